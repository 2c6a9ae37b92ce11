"""Composable feature generators used by the name context generators.

A feature generator appends string features for one token to a shared list.
Generators may be adaptive: they can learn from each finished sentence through
`update_adaptive_data` and forget everything at a document boundary through
`clear_adaptive_data`. Decorators such as `WindowFeatureGenerator` wrap another
generator and delegate to it, adding their own contributions.
"""
from __future__ import annotations
import re
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence

from .errors import SampleEncodingError

__all__ = [
    "token_class",
    "FeatureGenerator",
    "AggregatedFeatureGenerator",
    "TokenFeatureGenerator",
    "TokenClassFeatureGenerator",
    "BigramNameFeatureGenerator",
    "SentenceFeatureGenerator",
    "OutcomePriorFeatureGenerator",
    "PreviousMapFeatureGenerator",
    "AdditionalContextFeatureGenerator",
    "WindowFeatureGenerator",
]

# --- Token class helpers ---
_LOWERCASE = re.compile(r"^[a-z]+$")
_TWO_DIGITS = re.compile(r"^[0-9][0-9]$")
_FOUR_DIGITS = re.compile(r"^[0-9]{4}$")
_DIGITS = re.compile(r"^[0-9]+$")
_HAS_DIGIT = re.compile(r"[0-9]")
_HAS_ALPHA = re.compile(r"[^\W\d_]")


def token_class(token: str) -> str:
    """
    Classifies the orthographic shape of a token.

    Returns one of 'lc' (lowercase), '2d'/'4d' (two or four digits), 'an'
    (alphanumeric), 'dd'/'ds'/'dc'/'dp' (digits with a hyphen, slash, comma or
    period), 'num' (digits only), 'sc' (single capital), 'ac' (all caps),
    'ic' (initial capital) or 'other'.
    """
    if _LOWERCASE.match(token):
        return "lc"
    if _TWO_DIGITS.match(token):
        return "2d"
    if _FOUR_DIGITS.match(token):
        return "4d"
    has_digit = bool(_HAS_DIGIT.search(token))
    if has_digit:
        if _HAS_ALPHA.search(token):
            return "an"
        if "-" in token:
            return "dd"
        if "/" in token:
            return "ds"
        if "," in token:
            return "dc"
        if "." in token:
            return "dp"
        if _DIGITS.match(token):
            return "num"
        return "other"
    if token.isalpha() and token.isupper():
        return "sc" if len(token) == 1 else "ac"
    if token[:1].isupper():
        return "ic"
    return "other"


class FeatureGenerator(ABC):
    """Appends the features of the token at `index` to `features`."""

    @abstractmethod
    def create_features(
        self,
        features: List[str],
        tokens: Sequence[str],
        index: int,
        previous_outcomes: Optional[Sequence[str]],
    ) -> None:
        ...

    def update_adaptive_data(self, tokens: Sequence[str], outcomes: Sequence[str]) -> None:
        """Called once per finished sentence with its gold outcomes."""

    def clear_adaptive_data(self) -> None:
        """Forgets everything learned by `update_adaptive_data`."""


class AggregatedFeatureGenerator(FeatureGenerator):
    """Runs several generators in order and fans adaptive calls out to all of them."""

    def __init__(self, *generators: FeatureGenerator):
        self.generators: List[FeatureGenerator] = list(generators)

    def add(self, generator: FeatureGenerator) -> None:
        self.generators.append(generator)

    def create_features(self, features, tokens, index, previous_outcomes) -> None:
        for generator in self.generators:
            generator.create_features(features, tokens, index, previous_outcomes)

    def update_adaptive_data(self, tokens, outcomes) -> None:
        for generator in self.generators:
            generator.update_adaptive_data(tokens, outcomes)

    def clear_adaptive_data(self) -> None:
        for generator in self.generators:
            generator.clear_adaptive_data()


class TokenFeatureGenerator(FeatureGenerator):
    """Emits the token itself, lowercased unless told otherwise."""

    def __init__(self, lowercase: bool = True):
        self.lowercase = lowercase

    def create_features(self, features, tokens, index, previous_outcomes) -> None:
        token = tokens[index]
        features.append("w=" + (token.lower() if self.lowercase else token))


class TokenClassFeatureGenerator(FeatureGenerator):
    """Emits the token's shape class and, optionally, the word/class pair."""

    def __init__(self, generate_word_and_class: bool = True):
        self.generate_word_and_class = generate_word_and_class

    def create_features(self, features, tokens, index, previous_outcomes) -> None:
        wc = token_class(tokens[index])
        features.append("wc=" + wc)
        if self.generate_word_and_class:
            features.append(f"w&c={tokens[index].lower()},{wc}")


class BigramNameFeatureGenerator(FeatureGenerator):
    def create_features(self, features, tokens, index, previous_outcomes) -> None:
        wc = token_class(tokens[index])
        if index > 0:
            prev = tokens[index - 1]
            features.append(f"pw,w={prev},{tokens[index]}")
            features.append(f"pwc,wc={token_class(prev)},{wc}")
        if index + 1 < len(tokens):
            nxt = tokens[index + 1]
            features.append(f"w,nw={tokens[index]},{nxt}")
            features.append(f"wc,nc={wc},{token_class(nxt)}")


class SentenceFeatureGenerator(FeatureGenerator):
    """Marks the first and/or last token of a sentence."""

    def __init__(self, is_generate_first: bool = True, is_generate_last: bool = False):
        self.is_generate_first = is_generate_first
        self.is_generate_last = is_generate_last

    def create_features(self, features, tokens, index, previous_outcomes) -> None:
        if self.is_generate_first and index == 0:
            features.append("S=begin")
        if self.is_generate_last and index == len(tokens) - 1:
            features.append("S=end")


class OutcomePriorFeatureGenerator(FeatureGenerator):
    """Adds a constant bias feature so the model learns outcome priors."""

    OUTCOME_PRIOR_FEATURE = "def"

    def create_features(self, features, tokens, index, previous_outcomes) -> None:
        features.append(self.OUTCOME_PRIOR_FEATURE)


class PreviousMapFeatureGenerator(FeatureGenerator):
    """
    Remembers the last outcome each token received within the current document.

    After every sentence the gold outcome of each token is recorded; later
    sentences then get a `pd=<outcome>` feature for tokens seen before. This is
    what lets the model pick up a surname once the full name was tagged
    earlier in the same document.
    """

    def __init__(self):
        self.previous_map: Dict[str, str] = {}

    def create_features(self, features, tokens, index, previous_outcomes) -> None:
        decision = self.previous_map.get(tokens[index])
        if decision is not None:
            features.append("pd=" + decision)

    def update_adaptive_data(self, tokens, outcomes) -> None:
        for token, outcome in zip(tokens, outcomes):
            self.previous_map[token] = outcome

    def clear_adaptive_data(self) -> None:
        self.previous_map.clear()


class AdditionalContextFeatureGenerator(FeatureGenerator):
    """
    Exposes externally supplied per-token features.

    The current sample's auxiliary array must be installed with
    `set_current_context` before its contexts are generated. With no array
    installed nothing is emitted.
    """

    PREFIX = "ne="

    def __init__(self):
        self._context: Optional[Sequence[Sequence[str]]] = None

    def set_current_context(self, raw_context: Optional[Sequence[Sequence[str]]]) -> None:
        self._context = raw_context

    def create_features(self, features, tokens, index, previous_outcomes) -> None:
        if self._context is None:
            return
        if len(self._context) != len(tokens):
            raise SampleEncodingError(
                f"Additional context has {len(self._context)} rows but the sentence "
                f"has {len(tokens)} tokens."
            )
        for value in self._context[index]:
            features.append(self.PREFIX + value)


class WindowFeatureGenerator(FeatureGenerator):
    """
    Adds the wrapped generator's features for the surrounding tokens.

    Features of the token `d` positions back are prefixed with `p<d>` and
    those `d` positions ahead with `n<d>`; the current token's features are
    kept unprefixed. Offsets that fall outside the sentence are skipped.
    """

    PREV_PREFIX = "p"
    NEXT_PREFIX = "n"

    def __init__(self, generator: FeatureGenerator, before: int, after: int):
        if before < 0 or after < 0:
            raise ValueError("Window sizes must be non-negative.")
        self.generator = generator
        self.before = before
        self.after = after

    def create_features(self, features, tokens, index, previous_outcomes) -> None:
        self.generator.create_features(features, tokens, index, previous_outcomes)

        for d in range(1, self.before + 1):
            if index - d < 0:
                break
            window: List[str] = []
            self.generator.create_features(window, tokens, index - d, previous_outcomes)
            features.extend(f"{self.PREV_PREFIX}{d}{f}" for f in window)

        for d in range(1, self.after + 1):
            if index + d >= len(tokens):
                break
            window = []
            self.generator.create_features(window, tokens, index + d, previous_outcomes)
            features.extend(f"{self.NEXT_PREFIX}{d}{f}" for f in window)

    def update_adaptive_data(self, tokens, outcomes) -> None:
        self.generator.update_adaptive_data(tokens, outcomes)

    def clear_adaptive_data(self) -> None:
        self.generator.clear_adaptive_data()

    def __repr__(self) -> str:
        return f"WindowFeatureGenerator({self.generator!r}, {self.before}, {self.after})"
