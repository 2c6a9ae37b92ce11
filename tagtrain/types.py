from __future__ import annotations
from dataclasses import dataclass, field, fields
from typing import Optional, Sequence, Tuple

from .errors import InvalidSpanError, SampleEncodingError

__all__ = ["Span", "NameSample", "Event", "START", "CONTINUE", "OTHER"]

START = "start"
CONTINUE = "continue"
OTHER = "other"


@dataclass(frozen=True)
class Span:
    """
    A labeled, half-open token interval.

    Attributes:
        start: Index of the first token covered by the span.
        end: Index one past the last covered token.
        type: The entity type (e.g. 'person'). When None, the event stream's
              override or default type is used instead.

    Raises:
        InvalidSpanError: If `start` is negative or not strictly before `end`.
    """
    start: int
    end: int
    type: Optional[str] = None

    def __post_init__(self) -> None:
        if self.start < 0 or self.start >= self.end:
            raise InvalidSpanError(
                f"Span [{self.start}, {self.end}) must satisfy 0 <= start < end."
            )

    def __len__(self) -> int:
        return self.end - self.start

    def contains(self, index: int) -> bool:
        return self.start <= index < self.end

    def intersects(self, other: "Span") -> bool:
        return self.start < other.end and other.start < self.end

    def covered_text(self, tokens: Sequence[str]) -> Tuple[str, ...]:
        return tuple(tokens[self.start:self.end])


@dataclass(frozen=True)
class NameSample:
    """
    One annotated sentence produced by a sample source.

    Attributes:
        tokens: The tokens of the sentence.
        names: The annotated name spans over `tokens`.
        additional_context: Optional per-token auxiliary features, indexed
            `[token][slot]`. Fed to the window feature decorator.
        clear_adaptive_data: True if this sample starts a new document, in
            which case cross-sentence memory must be discarded first.

    Raises:
        SampleEncodingError: If a row of `additional_context` is not a
            sequence of strings. A bare string row is rejected too.
    """
    tokens: Tuple[str, ...]
    names: Tuple[Span, ...] = ()
    additional_context: Optional[Tuple[Tuple[str, ...], ...]] = None
    clear_adaptive_data: bool = False

    def __post_init__(self) -> None:
        # Freeze list inputs so samples stay hashable and read-only.
        object.__setattr__(self, "tokens", tuple(self.tokens))
        object.__setattr__(self, "names", tuple(self.names))
        if self.additional_context is not None:
            rows = []
            for i, row in enumerate(self.additional_context):
                if isinstance(row, str) or not isinstance(row, Sequence):
                    raise SampleEncodingError(
                        f"Additional context row {i} must be a sequence of strings, "
                        f"got {type(row).__name__}."
                    )
                if not all(isinstance(value, str) for value in row):
                    raise SampleEncodingError(
                        f"Additional context row {i} holds non-string values."
                    )
                rows.append(tuple(row))
            object.__setattr__(self, "additional_context", tuple(rows))

    @classmethod
    def get_field_names(cls) -> set[str]:
        """Returns the set of field names, used when loading from JSON."""
        return {f.name for f in fields(cls)}


@dataclass(frozen=True)
class Event:
    """A single training event: the gold outcome and its feature context."""

    outcome: str
    context: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "context", tuple(self.context))

    def __str__(self) -> str:
        return f"{self.outcome} [{' '.join(self.context)}]"
