"""Defaults and the settings accepted by an engine swap job."""
import json
import logging
from dataclasses import dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Optional

from .core.errors import ConfigError

logger = logging.getLogger(__name__)

ENGINE_CRANE_CAR_TAG = "engine crane"
BLANK_SPEC_VALUE = "---"
TURBO_CONTROLLER_INDEX = 0
DEFAULT_MINIMUM_RPM = 500
DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class PhysicsLevel(Enum):
    BASE_GAME = "base_game"
    CSP_EXTENDED = "csp_extended"

    @classmethod
    def from_string(cls, value: str) -> 'PhysicsLevel':
        try:
            return cls(value)
        except ValueError:
            valid = ', '.join(level.value for level in cls)
            raise ConfigError(f"Unknown physics level '{value}'. Expected one of: {valid}")


@dataclass
class SwapSettings:
    minimum_physics_level: PhysicsLevel = PhysicsLevel.BASE_GAME
    update_clutch: bool = True
    current_engine_weight: Optional[int] = None
    unpack_data: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> 'SwapSettings':
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown swap settings: {', '.join(unknown)}")
        values = dict(data)
        level = values.get("minimum_physics_level")
        if isinstance(level, str):
            values["minimum_physics_level"] = PhysicsLevel.from_string(level)
        weight = values.get("current_engine_weight")
        if weight is not None:
            if isinstance(weight, bool) or not isinstance(weight, (int, float)):
                raise ConfigError(f"current_engine_weight must be a number, got {weight!r}")
            values["current_engine_weight"] = int(weight)
        for flag in ("update_clutch", "unpack_data"):
            if flag in values and not isinstance(values[flag], bool):
                raise ConfigError(f"{flag} must be true or false, got {values[flag]!r}")
        return cls(**values)


def load_json_file(path) -> dict:
    path = Path(path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigError(f"Failed to read {path}. {e}")
    except json.JSONDecodeError as e:
        raise ConfigError(f"{path} is not valid json. {e}")
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a json object")
    return data


def load_settings(path) -> SwapSettings:
    return SwapSettings.from_dict(load_json_file(path))
