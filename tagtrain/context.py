"""Context generators turn one token of a sentence into a feature context.

`NameContextGenerator` is the seam between the event builder and the feature
set: the builder only ever calls the four methods declared here, so an
alternative feature set can be swapped in without touching event generation.
`DefaultNameContextGenerator` is the baseline lexical/positional variant.

Contexts must be requested left to right within a sentence, because the
previous-outcome features read the outcomes already assigned to earlier
tokens. During training those are the gold outcomes.
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple

from .featuregen import (
    AggregatedFeatureGenerator,
    BigramNameFeatureGenerator,
    FeatureGenerator,
    OutcomePriorFeatureGenerator,
    PreviousMapFeatureGenerator,
    SentenceFeatureGenerator,
    TokenClassFeatureGenerator,
    TokenFeatureGenerator,
    WindowFeatureGenerator,
    token_class,
)
from .types import OTHER

__all__ = ["NameContextGenerator", "DefaultNameContextGenerator", "default_feature_generator"]


class NameContextGenerator(ABC):
    """Produces the feature context of a token for name finding."""

    @abstractmethod
    def get_context(
        self,
        index: int,
        tokens: Sequence[str],
        outcomes_so_far: Optional[Sequence[str]],
        additional_context: Optional[Sequence[Sequence[str]]],
    ) -> Tuple[str, ...]:
        """
        Returns the features of `tokens[index]`.

        Args:
            index: Position of the token being classified.
            tokens: The whole sentence.
            outcomes_so_far: Outcomes of the tokens before `index`. Entries at
                or after `index` must not be read.
            additional_context: Optional per-token auxiliary features.
        """

    @abstractmethod
    def update_adaptive_data(self, tokens: Sequence[str], outcomes: Sequence[str]) -> None:
        """Learns cross-sentence features from a finished sentence."""

    @abstractmethod
    def clear_adaptive_data(self) -> None:
        """Discards everything learned by `update_adaptive_data`."""

    @abstractmethod
    def add_feature_generator(self, generator: FeatureGenerator) -> None:
        """Registers an extra generator whose features join every context."""


def default_feature_generator(token_window: int = 2) -> AggregatedFeatureGenerator:
    """The baseline generator set: token/class windows, prior, previous map, bigrams, sentence start."""
    return AggregatedFeatureGenerator(
        WindowFeatureGenerator(TokenFeatureGenerator(), token_window, token_window),
        WindowFeatureGenerator(TokenClassFeatureGenerator(True), token_window, token_window),
        OutcomePriorFeatureGenerator(),
        PreviousMapFeatureGenerator(),
        BigramNameFeatureGenerator(),
        SentenceFeatureGenerator(True, False),
    )


class DefaultNameContextGenerator(NameContextGenerator):
    """
    Baseline context generator for the name finder.

    Each context is built from the configured feature generators followed by
    previous-outcome features:

    - `po=`: outcome of the previous token (`other` at the sentence start).
    - `pow=`: previous outcome joined with the current token.
    - `powf=`: previous outcome joined with the current token class.
    - `ppo=`: outcome two tokens back.

    Each instance owns its generators, so adaptive state is never shared
    between two separately constructed context generators.
    """

    def __init__(self, *feature_generators: FeatureGenerator, token_window: int = 2):
        if feature_generators:
            self.feature_generator = AggregatedFeatureGenerator(*feature_generators)
        else:
            self.feature_generator = default_feature_generator(token_window)

    def add_feature_generator(self, generator: FeatureGenerator) -> None:
        self.feature_generator.add(generator)

    def update_adaptive_data(self, tokens, outcomes) -> None:
        self.feature_generator.update_adaptive_data(tokens, outcomes)

    def clear_adaptive_data(self) -> None:
        self.feature_generator.clear_adaptive_data()

    def get_context(self, index, tokens, outcomes_so_far, additional_context) -> Tuple[str, ...]:
        features: List[str] = []
        self.feature_generator.create_features(features, tokens, index, outcomes_so_far)

        po = OTHER
        ppo = OTHER
        if outcomes_so_far is not None:
            if index > 1:
                ppo = outcomes_so_far[index - 2]
            if index > 0:
                po = outcomes_so_far[index - 1]
        token = tokens[index]
        features.append("po=" + po)
        features.append(f"pow={po},{token}")
        features.append(f"powf={po},{token_class(token)}")
        features.append("ppo=" + ppo)
        return tuple(features)
