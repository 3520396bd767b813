"""
Generation helpers.

The core never talks to an LLM provider itself; it only recovers structured
data from the text a provider returned.
"""

from learncore.generation.response_extractor import (
    extract_list,
    extract_object,
    extract_structured,
)

__all__ = [
    "extract_structured",
    "extract_object",
    "extract_list",
]
