"""Saving and loading the aggregate between stages

The aggregate is written as JSON. Dataclasses, enums, paths, fractions,
tuples and dictionaries with non-string keys are tagged so they load back
as the same types.
"""

import dataclasses
import json
import logging
import os
from enum import Enum
from fractions import Fraction
from pathlib import Path
from typing import Any, Dict, Type

from .exceptions import ConfigurationError
from .models import cli_parameter, condor as condor_models, encoder, scene, stage_config
from .models.condor import Condor
from .quality import types as quality_types

logger = logging.getLogger(__name__)

STATE_VERSION = 1

def _registry() -> Dict[str, Type]:
    types = {}
    for module in (cli_parameter, condor_models, encoder, scene, stage_config, quality_types):
        for value in vars(module).values():
            if isinstance(value, type) and value.__module__ == module.__name__ and (
                    dataclasses.is_dataclass(value) or issubclass(value, Enum)):
                types[value.__name__] = value
    return types

_TYPES = _registry()

def encode_value(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        encoded = {"__type__": type(value).__name__}
        for field in dataclasses.fields(value):
            encoded[field.name] = encode_value(getattr(value, field.name))
        return encoded
    if isinstance(value, Enum):
        return {"__enum__": type(value).__name__, "value": value.value}
    if isinstance(value, Path):
        return {"__path__": str(value)}
    if isinstance(value, Fraction):
        return {"__fraction__": [value.numerator, value.denominator]}
    if isinstance(value, tuple):
        return {"__tuple__": [encode_value(item) for item in value]}
    if isinstance(value, list):
        return [encode_value(item) for item in value]
    if isinstance(value, dict):
        if all(isinstance(key, str) for key in value):
            return {key: encode_value(item) for key, item in value.items()}
        return {"__items__": [[encode_value(key), encode_value(item)] for key, item in value.items()]}
    return value

def decode_value(value: Any) -> Any:
    if isinstance(value, list):
        return [decode_value(item) for item in value]
    if not isinstance(value, dict):
        return value
    if "__type__" in value:
        cls = _TYPES.get(value["__type__"])
        if cls is None:
            raise ConfigurationError(f"Unknown type {value['__type__']!r} in state", "state")
        fields = {key: decode_value(item) for key, item in value.items() if key != "__type__"}
        return cls(**fields)
    if "__enum__" in value:
        cls = _TYPES.get(value["__enum__"])
        if cls is None:
            raise ConfigurationError(f"Unknown enum {value['__enum__']!r} in state", "state")
        return cls(value["value"])
    if "__path__" in value:
        return Path(value["__path__"])
    if "__fraction__" in value:
        return Fraction(*value["__fraction__"])
    if "__tuple__" in value:
        return tuple(decode_value(item) for item in value["__tuple__"])
    if "__items__" in value:
        return {decode_value(key): decode_value(item) for key, item in value["__items__"]}
    return {key: decode_value(item) for key, item in value.items()}

def save_condor(condor: Condor, path: Path) -> None:
    """Write the aggregate, replacing any previous state file atomically"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    temporary = path.with_name(path.name + ".tmp")
    with open(temporary, "w") as f:
        json.dump({"version": STATE_VERSION, "condor": encode_value(condor)}, f)
    os.replace(temporary, path)
    logger.debug("Saved state to %s", path)

def load_condor(path: Path) -> Condor:
    """Read an aggregate written by save_condor"""
    with open(path, "r") as f:
        document = json.load(f)
    if document.get("version") != STATE_VERSION:
        raise ConfigurationError(
            f"State file {path} has version {document.get('version')}, expected {STATE_VERSION}", "state"
        )
    condor = decode_value(document["condor"])
    if not isinstance(condor, Condor):
        raise ConfigurationError(f"State file {path} does not hold a condor run", "state")
    logger.info("Loaded state from %s with %d scenes", path, len(condor.scenes))
    return condor
