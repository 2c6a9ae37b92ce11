"""End-to-end name finder training: sample source -> events -> model."""
from __future__ import annotations
from typing import Iterable, Optional

from .config import Config
from .context import DefaultNameContextGenerator, NameContextGenerator
from .event_stream import NameEventStream
from .training import Model, Trainer, require_valid, train
from .types import NameSample


def train_name_finder(
    samples: Iterable[NameSample],
    cfg: Optional[Config] = None,
    trainer: Optional[Trainer] = None,
    context_generator: Optional[NameContextGenerator] = None,
) -> Model:
    """
    Trains a name finder model from annotated samples.

    The training parameters are validated before the sample source is read.
    The source is closed afterwards if it has a `close` method, whether or
    not training succeeded.

    Args:
        samples: The sample source.
        cfg: Settings; defaults to `Config()`.
        trainer: The trainer; defaults to the built-in `LogOddsTrainer`.
        context_generator: Feature generator; defaults to a
            `DefaultNameContextGenerator` with the configured token window.
    """
    cfg = cfg or Config()
    params = cfg.training_parameters()
    require_valid(params)

    if context_generator is None:
        context_generator = DefaultNameContextGenerator(token_window=cfg.token_window)

    with NameEventStream(samples, cfg.effective_type, context_generator) as events:
        return train(events, params, trainer)
