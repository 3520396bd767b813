"""
Configuration settings for the learning core.

Uses Pydantic Settings for environment variable management with .env file support.
Variables are prefixed with LEARNCORE_ (e.g. LEARNCORE_PARENT_CHUNK_SIZE=2000).

The mastery threshold and SM-2 constants are policy, not configuration,
and live next to the code that applies them.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from learncore.core.exceptions import InvalidConfiguration
from learncore.processing.chunker import validate_chunk_sizes


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="LEARNCORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Chunking
    # ========================================
    parent_chunk_size: int = Field(
        default=1500,
        description="Characters per parent span (grounding context block)",
    )
    parent_overlap: int = Field(
        default=50,
        description="Characters shared by consecutive parent spans",
    )
    child_chunk_size: int = Field(
        default=300,
        description="Characters per child span (query matching window)",
    )
    child_overlap: int = Field(
        default=50,
        description="Characters shared by consecutive child spans",
    )

    # ========================================
    # Retrieval
    # ========================================
    top_child_count: int = Field(
        default=5,
        ge=1,
        description="Ranked child spans considered per query",
    )
    top_parent_count: int = Field(
        default=2,
        ge=1,
        description="Maximum parent spans returned as context (bounds prompt size)",
    )

    # ========================================
    # Persistence & Logging
    # ========================================
    state_dir: Path = Field(
        default=Path.home() / ".learncore" / "state",
        description="Directory for the JSON file state store",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Minimum level written to stderr by the CLI",
    )

    @model_validator(mode="after")
    def _check_chunk_sizes(self) -> Settings:
        try:
            validate_chunk_sizes(
                self.parent_chunk_size,
                self.parent_overlap,
                self.child_chunk_size,
                self.child_overlap,
            )
        except InvalidConfiguration as e:
            raise ValueError(str(e)) from e
        return self

    def chunking_kwargs(self) -> dict[str, int]:
        """Window parameters as keyword arguments for build_index."""
        return {
            "l_parent": self.parent_chunk_size,
            "o_parent": self.parent_overlap,
            "l_child": self.child_chunk_size,
            "o_child": self.child_overlap,
        }

    def retrieval_kwargs(self) -> dict[str, int]:
        """Ranking limits as keyword arguments for retrieve."""
        return {
            "top_child_count": self.top_child_count,
            "top_parent_count": self.top_parent_count,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
