"""Exception hierarchy for the event generation and training pipeline.

Every error raised by this package derives from `TagTrainError`, so callers
can catch the whole family at once. The concrete classes also inherit from
the closest built-in exception (`ValueError`, `IOError`) so existing handlers
keep working.
"""
from __future__ import annotations

__all__ = [
    "TagTrainError",
    "SampleEncodingError",
    "InvalidSpanError",
    "SourceReadError",
    "InvalidTrainingConfigurationError",
]


class TagTrainError(Exception):
    """Base class for all pipeline errors."""


class SampleEncodingError(TagTrainError, ValueError):
    """A sample could not be turned into training events."""


class InvalidSpanError(SampleEncodingError):
    """A span's bounds are inconsistent with itself or with its sentence."""


class SourceReadError(TagTrainError, IOError):
    """The sample source failed to produce the next sample."""


class InvalidTrainingConfigurationError(TagTrainError, ValueError):
    """A group of training parameters failed validation."""
