"""
Core Module - Shared error types.

Every domain module (processing, generation, delivery, adaptive) raises the
errors defined here so callers can catch ``LearnCoreError`` in one place.
"""

from learncore.core.exceptions import (
    InvalidAssessment,
    InvalidConfiguration,
    InvalidQuality,
    LearnCoreError,
    MalformedGeneratedOutput,
    PhaseMismatch,
)

__all__ = [
    "LearnCoreError",
    "InvalidConfiguration",
    "InvalidQuality",
    "InvalidAssessment",
    "PhaseMismatch",
    "MalformedGeneratedOutput",
]
