"""
Error kinds raised by the learning core.

All of them are local, recoverable conditions. Validation happens before any
work is done, so a raised error never leaves a half-built index, a partially
applied review or a partially advanced session behind.
"""

from __future__ import annotations


class LearnCoreError(Exception):
    """Base class for every error raised by learncore."""
    pass


class InvalidConfiguration(LearnCoreError, ValueError):
    """Raised when chunking or retrieval parameters are inconsistent."""
    pass


class InvalidQuality(LearnCoreError, ValueError):
    """Raised when a recall quality is not an integer in [0, 5]."""

    def __init__(self, quality: object):
        self.quality = quality
        super().__init__(f"Recall quality must be an integer between 0 and 5, got {quality!r}")


class InvalidAssessment(LearnCoreError, ValueError):
    """Raised when assessment data handed to the mastery loop is unusable."""
    pass


class PhaseMismatch(LearnCoreError):
    """
    Raised when a mastery loop is advanced from a phase it is not in.

    Protects against double submissions (double clicks, retried requests)
    advancing the same session twice.
    """

    def __init__(self, expected: str, actual: str, message: str | None = None):
        self.expected = expected
        self.actual = actual
        super().__init__(
            message or f"Session is in phase '{expected}', cannot advance from '{actual}'"
        )


class MalformedGeneratedOutput(LearnCoreError):
    """
    Raised when no JSON value can be recovered from generated text.

    The raw text is kept on the exception so callers can log it or
    regenerate the response.
    """

    def __init__(self, raw_text: str, reason: str = "No parseable JSON object or array found"):
        self.raw_text = raw_text
        self.reason = reason
        super().__init__(f"{reason} in generated output ({len(raw_text)} chars)")
