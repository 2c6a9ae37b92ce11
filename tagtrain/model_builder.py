"""A counting log-odds trainer for event streams.

This is the built-in `Trainer` used when no external optimizer is supplied.
It is not a maximum-entropy optimizer; it estimates, for every feature, the
smoothed conditional probability of each outcome and stores it as log-odds.
Training has three steps:

1.  **Event table**: `events_to_frame` flattens the events into a long
    DataFrame with one row per (event, feature) pair.
2.  **Weight building**: `build_weights` drops rare features (the cutoff),
    sums the sample weight of every (feature, outcome) pair, applies Laplace
    smoothing and converts the resulting probabilities to log-odds.
3.  **Reweighting**: `LogOddsTrainer.train` optionally repeats the weight
    building for several rounds, boosting the weight of events the current
    model gets wrong.
"""
from __future__ import annotations
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd
from tqdm import tqdm

from .errors import InvalidTrainingConfigurationError
from .training import ALGORITHM_PARAM, ALPHA_PARAM, CUTOFF_PARAM, ROUNDS_PARAM
from .types import Event

__all__ = ["log_odds", "events_to_frame", "build_weights", "EventModel", "LogOddsTrainer"]

ERROR_BOOST_PARAM = "ErrorBoost"


def log_odds(p: float, eps: float = 1e-6) -> float:
    """
    Converts a probability to log-odds.

    Args:
        p: The probability (0.0 to 1.0).
        eps: A small epsilon value to prevent division by zero or log(0).
    """
    p = min(1 - eps, max(eps, p))
    return math.log(p / (1 - p))


def events_to_frame(events: Iterable[Event]) -> pd.DataFrame:
    """
    Flattens events into a long table with `event_id`, `outcome` and `feature` columns.

    Repeated features within one event count once.
    """
    rows = []
    for event_id, event in enumerate(events):
        for feature in dict.fromkeys(event.context):
            rows.append((event_id, event.outcome, feature))
    return pd.DataFrame(rows, columns=["event_id", "outcome", "feature"])


def build_weights(
    df: pd.DataFrame,
    outcomes: Sequence[str],
    alpha: float = 0.1,
    cutoff: int = 0,
    sample_weights: Optional[pd.Series] = None,
) -> Dict[str, Dict[str, float]]:
    """
    Builds per-feature outcome weights from an event table.

    Args:
        df: The output of `events_to_frame`.
        outcomes: Every outcome the model can predict.
        alpha: Laplace smoothing added to each (feature, outcome) count.
        cutoff: Features occurring in fewer than this many events are dropped.
        sample_weights: Optional weight per `event_id`; missing ids weigh 1.0.

    Returns:
        A nested dictionary `{feature: {outcome: log_odds}}`.

    Raises:
        ValueError: If the input DataFrame is empty.
    """
    if df.empty:
        raise ValueError("Input DataFrame is empty. Cannot build weights.")

    df = df.copy()
    if sample_weights is not None:
        df["sample_weight"] = df["event_id"].map(sample_weights).fillna(1.0)
    else:
        df["sample_weight"] = 1.0

    if cutoff > 0:
        support = df.groupby("feature")["event_id"].nunique()
        df = df[df["feature"].isin(support[support >= cutoff].index)]
        if df.empty:
            print(f"Warning: No feature reaches the cutoff of {cutoff}. The model has no weights.")
            return {}

    counts = df.groupby(["feature", "outcome"])["sample_weight"].sum().unstack(fill_value=0.0)
    counts = counts.reindex(columns=list(outcomes), fill_value=0.0) + alpha
    probs = counts.div(counts.sum(axis=1), axis=0)

    weights = {}
    for feature, row in probs.iterrows():
        weights[feature] = {outcome: log_odds(float(row[outcome])) for outcome in outcomes}
    return weights


@dataclass
class EventModel:
    """
    An in-memory model produced by `LogOddsTrainer`.

    Attributes:
        outcomes: The outcomes seen in training, sorted.
        priors: Log prior probability of each outcome.
        weights: Log-odds per feature and outcome.
        settings: The training settings the model was built with.
    """
    outcomes: List[str]
    priors: Dict[str, float]
    weights: Dict[str, Dict[str, float]]
    settings: Dict[str, Any] = field(default_factory=dict)

    def eval(self, context: Sequence[str]) -> Dict[str, float]:
        """Scores every outcome for a feature context; unknown features are ignored."""
        scores = dict(self.priors)
        for feature in dict.fromkeys(context):
            feature_weights = self.weights.get(feature)
            if feature_weights is None:
                continue
            for outcome in self.outcomes:
                scores[outcome] += feature_weights.get(outcome, 0.0)
        return scores

    def best_outcome(self, context: Sequence[str]) -> str:
        scores = self.eval(context)
        return max(self.outcomes, key=lambda o: scores[o])

    @property
    def num_features(self) -> int:
        return len(self.weights)


class LogOddsTrainer:
    """
    Trains an `EventModel` from an event stream.

    Recognized settings: `Cutoff` (default 0), `Alpha` (default 0.1),
    `Rounds` of error-boost reweighting (default 1) and `ErrorBoost`, the
    amount added to the weight of a misclassified event after each round
    (default 1.0). `Algorithm`, when given, must be `LOGODDS`.
    """

    ALGORITHM = "LOGODDS"

    def validate(self, settings: Mapping[str, Any]) -> None:
        """
        Rejects settings this trainer cannot honour, before any event is read.

        Raises:
            InvalidTrainingConfigurationError: If `Algorithm` is not `LOGODDS`.
        """
        algorithm = str(settings.get(ALGORITHM_PARAM, self.ALGORITHM)).upper()
        if algorithm != self.ALGORITHM:
            raise InvalidTrainingConfigurationError(
                f"{type(self).__name__} cannot train algorithm '{algorithm}'."
            )

    def train(self, events: Iterable[Event], settings: Mapping[str, Any]) -> EventModel:
        self.validate(settings)
        cutoff = int(settings.get(CUTOFF_PARAM, 0))
        alpha = float(settings.get(ALPHA_PARAM, 0.1))
        rounds = int(settings.get(ROUNDS_PARAM, 1))
        error_boost = float(settings.get(ERROR_BOOST_PARAM, 1.0))

        event_list = list(tqdm(events, desc="Reading events"))
        if not event_list:
            raise ValueError("No training events. Cannot train a model.")

        gold = pd.Series([e.outcome for e in event_list])
        outcomes = sorted(gold.unique())
        df = events_to_frame(event_list)
        print(f"Indexed {len(event_list)} events with {df['feature'].nunique()} distinct features.")

        sample_weights = pd.Series(1.0, index=gold.index)
        model = None
        for i in range(rounds):
            priors = sample_weights.groupby(gold).sum()
            priors = np.log(priors / priors.sum())
            weights = {}
            if not df.empty:
                weights = build_weights(
                    df, outcomes, alpha=alpha, cutoff=cutoff, sample_weights=sample_weights
                )
            model = EventModel(
                outcomes=outcomes,
                priors={o: float(priors[o]) for o in outcomes},
                weights=weights,
                settings=dict(settings),
            )

            if i == rounds - 1:
                break

            predictions = pd.Series([model.best_outcome(e.context) for e in event_list])
            errors = predictions != gold
            print(f"Round {i + 1} accuracy on training set: {1 - errors.mean():.2%}")
            if not errors.any():
                print("Model achieved 100% accuracy on the training set. Stopping early.")
                break
            sample_weights[errors] += error_boost

        return model
