"""Encodes span annotations as a per-token begin/continue/other label sequence.

The name finder is trained as a token classifier, so every annotated name must
be flattened onto the tokens it covers. The first token of a name receives
`<type>-start`, the following tokens `<type>-continue`, and every uncovered
token `other`.

This module also builds the "previous decision" additional context that lets
a second tagging pass see the labels a first pass assigned to each word.
"""
from __future__ import annotations
from typing import Iterable, List, Mapping, Optional, Sequence

from .errors import InvalidSpanError
from .types import CONTINUE, OTHER, START, Span

__all__ = [
    "DEFAULT_TYPE",
    "UNKNOWN_DECISION",
    "outcome_label",
    "encode",
    "decode",
    "additional_context",
]

DEFAULT_TYPE = "default"
UNKNOWN_DECISION = "none"


def outcome_label(name_type: str, position: str) -> str:
    """Joins a name type and a position marker, e.g. ('person', 'start')."""
    return f"{name_type}-{position}"


def _check_spans(spans: Sequence[Span], length: int) -> None:
    ordered = sorted(spans, key=lambda s: (s.start, s.end))
    for span in ordered:
        if span.end > length:
            raise InvalidSpanError(
                f"Span [{span.start}, {span.end}) exceeds sentence length {length}."
            )
    for prev, cur in zip(ordered, ordered[1:]):
        if prev.intersects(cur):
            raise InvalidSpanError(
                f"Spans [{prev.start}, {prev.end}) and [{cur.start}, {cur.end}) overlap."
            )


def encode(
    spans: Iterable[Span],
    override_type: Optional[str],
    length: int,
    default_type: str = DEFAULT_TYPE,
) -> List[str]:
    """
    Generates the start/continue/other outcome for each token of a sentence.

    Args:
        spans: The name spans annotated on the sentence.
        override_type: Type used for spans that carry no type of their own.
            When None, `default_type` is used.
        length: The number of tokens in the sentence.
        default_type: Fallback type name when neither the span nor the
            override supply one.

    Returns:
        A list of exactly `length` outcome labels.

    Raises:
        InvalidSpanError: If a span reaches past the sentence or two spans
            overlap.
    """
    spans = list(spans)
    _check_spans(spans, length)

    outcomes = [OTHER] * length
    fallback = override_type if override_type is not None else default_type
    for span in spans:
        name_type = span.type if span.type is not None else fallback
        outcomes[span.start] = outcome_label(name_type, START)
        for i in range(span.start + 1, span.end):
            outcomes[i] = outcome_label(name_type, CONTINUE)
    return outcomes


def decode(outcomes: Sequence[str]) -> List[Span]:
    """
    Recovers typed spans from an outcome sequence.

    A `-continue` label that does not follow a name of the same type is
    treated as the start of a new name.
    """
    spans: List[Span] = []
    start = None
    current = None
    for i, outcome in enumerate(list(outcomes) + [OTHER]):
        name_type, _, position = outcome.rpartition("-")
        if outcome == OTHER or position == START or name_type != current:
            if start is not None:
                spans.append(Span(start, i, current))
                start, current = None, None
            if outcome != OTHER:
                start, current = i, name_type
    return spans


def additional_context(
    tokens: Sequence[str], previous_map: Mapping[str, str]
) -> List[List[str]]:
    """
    Builds previous-decision features for each token.

    Args:
        tokens: The tokens of the sentence.
        previous_map: Maps a token to the outcome a previous pass assigned it.

    Returns:
        One single-slot row per token holding `pd=<decision>`; tokens absent
        from the map get `pd=none`.
    """
    return [[f"pd={previous_map.get(token, UNKNOWN_DECISION)}"] for token in tokens]
