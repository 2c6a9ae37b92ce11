"""Manages the loading and validation of training configuration.

This module defines the `Config` dataclass, a typed container for the settings
of an event generation and training run, and the `load_config` function that
reads them from a YAML file. Training parameters live under a `training`
section; nested mappings in that section are per-sub-model groups (for the
parser: `build`, `check`, `attach`, `tagger`, `chunker`).

Example `config.yaml`:

    default_type: default
    token_window: 2
    encoding: utf-8
    training:
      Algorithm: LOGODDS
      Cutoff: 5
      Rounds: 3
      build:
        Cutoff: 2
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import yaml

from .outcomes import DEFAULT_TYPE
from .training import TrainingParameters, create_training_parameters


@dataclass
class Config:
    """
    A typed configuration object for event generation and training.

    Attributes:
        default_type: Type name given to spans that carry no type, unless the
                      sample stream overrides it.
        override_type: When set, replaces the type of every untyped span.
        token_window: Radius of the token and token-class feature windows
                      of the default context generator.
        encoding: Text encoding of sample files.
        training: Nested training parameter mapping. Empty means the defaults
                  of `create_training_parameters`.
    """
    default_type: str = DEFAULT_TYPE
    override_type: Optional[str] = None
    token_window: int = 2
    encoding: str = "utf-8"
    training: Dict[str, Any] = field(default_factory=dict)

    def training_parameters(self) -> TrainingParameters:
        if not self.training:
            return create_training_parameters()
        return TrainingParameters.from_mapping(self.training)

    @property
    def effective_type(self) -> str:
        """The type that untyped spans receive."""
        return self.override_type if self.override_type is not None else self.default_type


def load_config(path: str = "config.yaml") -> Config:
    """
    Loads and validates a configuration file into a Config object.

    Args:
        path: The path to the YAML configuration file.

    Returns:
        A fully populated `Config` object.

    Raises:
        FileNotFoundError: If the specified file cannot be found.
        ValueError: If there is an error parsing the YAML file, or a setting
                    has the wrong type.
        TypeError: If the root of the YAML file, or its `training` section,
                   is not a dictionary.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            y = yaml.safe_load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"Configuration file not found at: {path}")
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing YAML file at {path}: {e}")

    if not isinstance(y, dict):
        raise TypeError(f"Configuration file {path} must be a dictionary.")

    training = y.get("training") or {}
    if not isinstance(training, dict):
        raise TypeError(f"The 'training' section of {path} must be a dictionary.")

    override = y.get("override_type")
    try:
        token_window = int(y.get("token_window", 2))
    except (TypeError, ValueError):
        raise ValueError(f"token_window in {path} must be an integer.")
    if token_window < 0:
        raise ValueError(f"token_window in {path} must not be negative.")

    return Config(
        default_type=str(y.get("default_type", DEFAULT_TYPE)),
        override_type=str(override) if override is not None else None,
        token_window=token_window,
        encoding=str(y.get("encoding", "utf-8")),
        training=dict(training),
    )
