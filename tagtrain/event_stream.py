"""Turns a stream of annotated samples into a flat stream of training events.

The trainer consumes one long, lazy sequence of `Event` objects. This module
produces it in two layers:

1.  **Event building**: `EventBuilder.build` converts a single `NameSample`
    into its events. It encodes the spans as outcomes, asks the context
    generator for each token's features in sentence order, and finally lets
    the generator learn from the finished sentence.
2.  **Flattening**: `EventStream` pulls samples from a sample source one at a
    time and yields the events of each, so only the current sentence is ever
    held in memory.

One stream owns exactly one builder and one context generator for its whole
traversal. Adaptive state is cleared when a traversal starts and whenever a
sample carries the `clear_adaptive_data` flag, and at no other point.
"""
from __future__ import annotations
import weakref
from typing import Any, Iterable, Iterator, List, Optional, Sequence

from .context import DefaultNameContextGenerator, NameContextGenerator
from .errors import SampleEncodingError
from .featuregen import AdditionalContextFeatureGenerator, WindowFeatureGenerator
from .outcomes import DEFAULT_TYPE, encode
from .types import Event, NameSample

__all__ = ["generate_events", "EventBuilder", "EventStream", "NameEventStream"]

ADDITIONAL_CONTEXT_WINDOW = 8

# context generators that already carry a builder-installed additional-context window
_WINDOWED: "weakref.WeakSet[NameContextGenerator]" = weakref.WeakSet()


def generate_events(
    tokens: Sequence[str],
    outcomes: Sequence[str],
    context_generator: NameContextGenerator,
    additional_context: Optional[Sequence[Sequence[str]]] = None,
) -> List[Event]:
    """
    Creates one event per token and then updates the generator's adaptive data.

    The gold `outcomes` are passed to the generator for every token, so the
    previous-outcome features see gold labels, never predictions.

    Raises:
        SampleEncodingError: If the token and outcome counts differ, or the
            generator returns something other than a sequence of features.
    """
    if len(tokens) != len(outcomes):
        raise SampleEncodingError(
            f"Sentence has {len(tokens)} tokens but {len(outcomes)} outcomes."
        )

    events = []
    for i, outcome in enumerate(outcomes):
        context = context_generator.get_context(i, tokens, outcomes, additional_context)
        if isinstance(context, str) or not isinstance(context, Sequence):
            raise SampleEncodingError(
                f"Context generator returned {type(context).__name__} for token {i}; "
                "expected a sequence of features."
            )
        events.append(Event(outcome, context))

    context_generator.update_adaptive_data(tokens, outcomes)
    return events


class EventBuilder:
    """
    Builds the events of one sample at a time.

    Attributes:
        context_generator: The generator asked for every token's features.
        override_type: Type used for spans without their own type.
        additional_context_generator: Receives each sample's additional
            context before its events are generated. When the builder creates
            it, it is installed into `context_generator` inside an 8-token
            window.

    Raises:
        ValueError: If the builder would install its window into a context
            generator that another builder has already extended. A context
            generator belongs to one builder, and so to one stream.
    """

    def __init__(
        self,
        context_generator: NameContextGenerator,
        override_type: Optional[str] = None,
        additional_context_generator: Optional[AdditionalContextFeatureGenerator] = None,
    ):
        self.context_generator = context_generator
        self.override_type = override_type if override_type is not None else DEFAULT_TYPE

        if additional_context_generator is None:
            if context_generator in _WINDOWED:
                raise ValueError(
                    f"{type(context_generator).__name__} is already used by another event "
                    "builder; create a new context generator for each stream."
                )
            _WINDOWED.add(context_generator)
            additional_context_generator = AdditionalContextFeatureGenerator()
            self.context_generator.add_feature_generator(
                WindowFeatureGenerator(
                    additional_context_generator,
                    ADDITIONAL_CONTEXT_WINDOW,
                    ADDITIONAL_CONTEXT_WINDOW,
                )
            )
        self.additional_context_generator = additional_context_generator

    def build(self, sample: NameSample) -> List[Event]:
        """
        Returns the ordered events of `sample`, one per token.

        Raises:
            SampleEncodingError: If the sample is malformed. `InvalidSpanError`
                is raised for spans that do not fit the sentence. No events of
                the sample are returned in either case.
        """
        if sample.clear_adaptive_data:
            self.context_generator.clear_adaptive_data()

        tokens = list(sample.tokens)
        outcomes = encode(sample.names, self.override_type, len(tokens))

        raw_context = sample.additional_context
        if raw_context is not None and len(raw_context) != len(tokens):
            raise SampleEncodingError(
                f"Additional context has {len(raw_context)} rows but the sentence "
                f"has {len(tokens)} tokens."
            )
        self.additional_context_generator.set_current_context(raw_context)
        try:
            return generate_events(tokens, outcomes, self.context_generator, raw_context)
        finally:
            self.additional_context_generator.set_current_context(None)

    def reset(self) -> None:
        """Clears adaptive state, as at the start of a corpus."""
        self.context_generator.clear_adaptive_data()


class EventStream:
    """
    Lazily flattens a sample source into an event sequence.

    The stream keeps no copy of the samples: iterating it again re-reads the
    source, which only yields the same samples if the source itself can be
    restarted (a list, or a source whose `reset` has been called). Exiting a
    `with` block closes the source if it has a `close` method, also when
    iteration stopped early because of an error.

    Subclasses implement `create_events` for their sample type.
    """

    def __init__(self, samples: Iterable[Any]):
        self.samples = samples

    def create_events(self, sample: Any) -> List[Event]:
        raise NotImplementedError

    def start(self) -> None:
        """Hook run at the start of every traversal."""

    def __iter__(self) -> Iterator[Event]:
        self.start()
        for sample in self.samples:
            yield from self.create_events(sample)

    def reset(self) -> None:
        """Rewinds the underlying source so the stream can be traversed again."""
        reset = getattr(self.samples, "reset", None)
        if reset is None:
            raise TypeError(f"{type(self.samples).__name__} does not support reset.")
        reset()

    def close(self) -> None:
        close = getattr(self.samples, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> "EventStream":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class NameEventStream(EventStream):
    """
    Event stream for name finder training.

    Args:
        samples: A source of `NameSample` objects.
        override_type: Overrides the type of untyped spans; 'default' when None.
        context_generator: The feature generator. A fresh
            `DefaultNameContextGenerator` is created when omitted; a supplied
            generator receives the additional-context window generator and
            cannot be passed to a second stream (`ValueError`).
    """

    def __init__(
        self,
        samples: Iterable[NameSample],
        override_type: Optional[str] = None,
        context_generator: Optional[NameContextGenerator] = None,
    ):
        super().__init__(samples)
        if context_generator is None:
            context_generator = DefaultNameContextGenerator()
        self.builder = EventBuilder(context_generator, override_type)

    @property
    def context_generator(self) -> NameContextGenerator:
        return self.builder.context_generator

    def start(self) -> None:
        self.builder.reset()

    def create_events(self, sample: NameSample) -> List[Event]:
        return self.builder.build(sample)
