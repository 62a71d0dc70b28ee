"""Pydantic models for the sensor/actuator configuration file.

The file is JSON shaped like::

    {
      "sensor_read_freq_secs": 60,
      "retry_read_secs": 2,
      "sensors": {
        "inside": {
          "pin": 4,
          "actions": [{"typ": "temp below", "value": 60, "action": "enable", "pin": 17}]
        }
      }
    }

Rule tags are closed enumerations, so an unknown ``typ`` or ``action`` is
rejected when the file is loaded rather than when a rule would fire.
"""

from __future__ import annotations

import json
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from models.errors import ConfigError
from settings import get_settings


class ConditionKind(str, Enum):
    """Comparison applied to the sensor's temperature reading."""

    below = "temp below"
    above = "temp above"


class Effect(str, Enum):
    """Logical pin state driven when a rule fires."""

    enable = "enable"
    disable = "disable"


class ActionRule(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    condition: ConditionKind = Field(..., alias="typ")
    threshold: float = Field(..., alias="value")
    effect: Effect = Field(..., alias="action")
    target_pin: int = Field(..., alias="pin", ge=0)


class SensorConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1)
    pin: int = Field(..., ge=0)
    actions: Tuple[ActionRule, ...] = ()

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        candidate = value.strip()
        if not candidate:
            raise ValueError("sensor name must not be blank")
        return candidate


class ControllerConfig(BaseModel):
    """Process-wide polling configuration, immutable once loaded."""

    model_config = ConfigDict(frozen=True)

    sensor_read_freq_secs: float = Field(..., gt=0)
    retry_read_secs: float = Field(..., ge=0)
    sensors: Tuple[SensorConfig, ...] = ()

    @field_validator("sensors", mode="before")
    @classmethod
    def _sensors_from_mapping(cls, value: Any) -> Any:
        if not isinstance(value, Mapping):
            return value
        entries = []
        for name, entry in value.items():
            if isinstance(entry, Mapping):
                entries.append({"name": name, **entry})
            else:
                entries.append(entry)
        return entries


def parse_controller_config(data: Any) -> ControllerConfig:
    try:
        return ControllerConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid sensor configuration: {exc}") from exc


def load_controller_config(path: Path) -> ControllerConfig:
    """Read and validate the configuration file at ``path``."""
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read configuration file {str(path)!r}: {exc}") from exc
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Configuration file {str(path)!r} is not valid JSON: {exc}") from exc
    return parse_controller_config(data)


@lru_cache
def build_default_config(path: Optional[str] = None) -> ControllerConfig:
    config_path = get_settings().config_path if path is None else path
    return load_controller_config(Path(config_path))
