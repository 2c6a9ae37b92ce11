"""Training parameters and the hand-off to a trainer.

Parameters are stored flat. Keys that belong to one sub-model carry its name
as a prefix (`build.Iterations`), everything else applies to all sub-models.
Multi-stage models such as the parser train one sub-model per stage ("build",
"check", "attach", "tagger", "chunker"); each stage sees the global settings
overlaid with its own.

All parameter groups are validated before the first event is pulled, so a bad
configuration fails immediately instead of halfway through training.
"""
from __future__ import annotations
import math
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Protocol, Sequence

from .errors import InvalidTrainingConfigurationError
from .types import Event

__all__ = [
    "ALGORITHM_PARAM",
    "ITERATIONS_PARAM",
    "CUTOFF_PARAM",
    "ALPHA_PARAM",
    "ROUNDS_PARAM",
    "VALID_ALGORITHMS",
    "PARSER_STAGES",
    "Model",
    "Trainer",
    "TrainingParameters",
    "create_training_parameters",
    "validate_settings",
    "require_valid",
    "ParserType",
    "parse_parser_type",
    "train",
    "train_stages",
]

ALGORITHM_PARAM = "Algorithm"
ITERATIONS_PARAM = "Iterations"
CUTOFF_PARAM = "Cutoff"
ALPHA_PARAM = "Alpha"
ROUNDS_PARAM = "Rounds"

VALID_ALGORITHMS = ("LOGODDS", "MAXENT", "MAXENT_QN", "PERCEPTRON", "PERCEPTRON_SEQUENCE")
PARSER_STAGES = ("build", "check", "attach", "tagger", "chunker")


class Model(Protocol):
    def eval(self, context: Sequence[str]) -> Dict[str, float]:
        ...


class Trainer(Protocol):
    """
    Fits a model to an event stream.

    A trainer may also define `validate(settings)`, raising
    `InvalidTrainingConfigurationError` for settings it cannot handle; `train`
    and `train_stages` call it for every group before any training starts.
    """

    def train(self, events: Iterable[Event], settings: Mapping[str, Any]) -> Model:
        ...


class TrainingParameters:
    """
    Named training settings, optionally grouped by sub-model.

    Example:
        >>> params = TrainingParameters.from_mapping(
        ...     {"Iterations": 100, "build": {"Iterations": 200}})
        >>> params.settings("build")["Iterations"]
        200
        >>> params.settings("check")["Iterations"]
        100
    """

    def __init__(self, params: Optional[Mapping[str, Any]] = None):
        self._params: Dict[str, Any] = dict(params or {})

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "TrainingParameters":
        """Builds parameters from a nested mapping, such as a parsed YAML section."""
        flat: Dict[str, Any] = {}
        for key, value in mapping.items():
            if isinstance(value, Mapping):
                for sub_key, sub_value in value.items():
                    flat[f"{key}.{sub_key}"] = sub_value
            else:
                flat[str(key)] = value
        return cls(flat)

    def put(self, key: str, value: Any, namespace: Optional[str] = None) -> None:
        self._params[f"{namespace}.{key}" if namespace else key] = value

    def settings(self, namespace: Optional[str] = None) -> Dict[str, Any]:
        """Global settings, overlaid with those of `namespace` when given."""
        out = {k: v for k, v in self._params.items() if "." not in k}
        if namespace:
            prefix = namespace + "."
            out.update({k[len(prefix):]: v for k, v in self._params.items() if k.startswith(prefix)})
        return out

    def namespaces(self) -> set[str]:
        return {k.split(".", 1)[0] for k in self._params if "." in k}

    def __contains__(self, key: str) -> bool:
        return key in self._params

    def __eq__(self, other: object) -> bool:
        return isinstance(other, TrainingParameters) and self._params == other._params

    def __repr__(self) -> str:
        return f"TrainingParameters({self._params!r})"


def create_training_parameters(iterations: int = 100, cutoff: int = 5) -> TrainingParameters:
    """Default parameters used when no parameter file is given."""
    return TrainingParameters({
        ALGORITHM_PARAM: "LOGODDS",
        ITERATIONS_PARAM: iterations,
        CUTOFF_PARAM: cutoff,
    })


def _is_int(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if not isinstance(value, str):
        return False
    try:
        int(value)
    except ValueError:
        return False
    return True


def _is_finite_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError):
        return False


def validate_settings(settings: Mapping[str, Any]) -> bool:
    """
    Checks one group of settings.

    Missing keys fall back to trainer defaults and are accepted. Present keys
    must satisfy: a known `Algorithm`, a positive integer `Iterations` and
    `Rounds`, a non-negative integer `Cutoff`, and a positive, finite `Alpha`.
    """
    algorithm = settings.get(ALGORITHM_PARAM)
    if algorithm is not None and str(algorithm).upper() not in VALID_ALGORITHMS:
        return False

    for key, minimum in ((ITERATIONS_PARAM, 1), (ROUNDS_PARAM, 1), (CUTOFF_PARAM, 0)):
        if key in settings:
            value = settings[key]
            if not _is_int(value) or int(value) < minimum:
                return False

    if ALPHA_PARAM in settings:
        alpha = settings[ALPHA_PARAM]
        if not _is_finite_number(alpha) or float(alpha) <= 0:
            return False
    return True


def require_valid(params: TrainingParameters, groups: Sequence[Optional[str]] = (None,)) -> None:
    """
    Validates every named group, in order.

    Raises:
        InvalidTrainingConfigurationError: Naming the first invalid group,
            e.g. "Build training parameters are invalid!".
    """
    for group in groups:
        if not validate_settings(params.settings(group)):
            label = group.capitalize() if group else "Global"
            raise InvalidTrainingConfigurationError(f"{label} training parameters are invalid!")


class ParserType(Enum):
    CHUNKING = "CHUNKING"
    TREEINSERT = "TREEINSERT"


def parse_parser_type(text: Optional[str]) -> Optional[ParserType]:
    """
    Parses a parser type name; empty input means "not specified".

    Raises:
        InvalidTrainingConfigurationError: If the name is not a known type.
    """
    if not text:
        return None
    try:
        return ParserType(text.strip().upper())
    except ValueError:
        raise InvalidTrainingConfigurationError(
            f"ParserType training parameter '{text}' is invalid!"
        )


def _resolve_trainer(trainer: Optional[Trainer]) -> Trainer:
    if trainer is None:
        from .model_builder import LogOddsTrainer
        trainer = LogOddsTrainer()
    return trainer


def _check_groups(
    params: TrainingParameters, groups: Sequence[Optional[str]], trainer: Trainer
) -> None:
    """Runs `require_valid`, then the trainer's own `validate` hook if it has one."""
    require_valid(params, groups)
    validate = getattr(trainer, "validate", None)
    if validate is None:
        return
    for group in groups:
        validate(params.settings(group))


def train(
    events: Iterable[Event],
    params: TrainingParameters,
    trainer: Optional[Trainer] = None,
    namespace: Optional[str] = None,
) -> Model:
    """
    Validates `params` and trains a model on `events`.

    The events are not touched until validation has passed, including the
    trainer's `validate(settings)` check when the trainer defines one.
    Without an explicit trainer the built-in `LogOddsTrainer` is used.
    """
    trainer = _resolve_trainer(trainer)
    _check_groups(params, (namespace,), trainer)
    return trainer.train(events, params.settings(namespace))


def train_stages(
    stage_events: Mapping[str, Iterable[Event]],
    params: TrainingParameters,
    trainer: Optional[Trainer] = None,
    stages: Sequence[str] = PARSER_STAGES,
) -> Dict[str, Model]:
    """
    Trains one model per stage, e.g. the parser's build/check/attach/tagger/chunker.

    Every stage's parameters are validated, generically and by the trainer,
    before any stage is trained.

    Raises:
        InvalidTrainingConfigurationError: If a stage group is invalid or
            names settings the trainer cannot handle.
        KeyError: If `stage_events` lacks events for one of `stages`.
    """
    trainer = _resolve_trainer(trainer)
    _check_groups(params, stages, trainer)
    missing = [s for s in stages if s not in stage_events]
    if missing:
        raise KeyError(f"No training events for stage(s): {', '.join(missing)}")

    models = {}
    for stage in stages:
        print(f"Training {stage} model...")
        models[stage] = trainer.train(stage_events[stage], params.settings(stage))
    return models
