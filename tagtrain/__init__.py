"""Event generation for training statistical sequence-labeling models."""
from .context import DefaultNameContextGenerator, NameContextGenerator
from .errors import (
    InvalidSpanError,
    InvalidTrainingConfigurationError,
    SampleEncodingError,
    SourceReadError,
    TagTrainError,
)
from .event_stream import EventBuilder, EventStream, NameEventStream, generate_events
from .outcomes import additional_context, encode
from .types import Event, NameSample, Span

__all__ = [
    "DefaultNameContextGenerator",
    "NameContextGenerator",
    "InvalidSpanError",
    "InvalidTrainingConfigurationError",
    "SampleEncodingError",
    "SourceReadError",
    "TagTrainError",
    "EventBuilder",
    "EventStream",
    "NameEventStream",
    "generate_events",
    "additional_context",
    "encode",
    "Event",
    "NameSample",
    "Span",
]
