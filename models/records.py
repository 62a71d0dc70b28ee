"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

TEMPERATURE_PREFIX = "temp-"
HUMIDITY_PREFIX = "humidity-"

Point = Tuple[int, float]


def temperature_series(sensor_name: str) -> str:
    return f"{TEMPERATURE_PREFIX}{sensor_name}"


def humidity_series(sensor_name: str) -> str:
    return f"{HUMIDITY_PREFIX}{sensor_name}"


@dataclass(frozen=True, slots=True)
class Reading:
    """A single stored value of a series at an epoch-second timestamp."""

    series_name: str
    timestamp: int
    value: float


@dataclass(frozen=True, slots=True)
class SensorSample:
    """Raw output of one successful sensor read, before unit conversion."""

    temperature_c: float
    humidity: float


@dataclass(slots=True)
class ChartSeries:
    name: str
    points: List[Point] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class ChartRequest:
    """Which series to draw, optional value-axis overrides, and the title."""

    series_names: Tuple[str, ...]
    title: str
    x_min: Optional[float] = None
    x_max: Optional[float] = None


@dataclass(frozen=True, slots=True)
class ChartBounds:
    time_min: int
    time_max: int
    value_min: float
    value_max: float


@dataclass(frozen=True, slots=True)
class RenderedChart:
    content: bytes
    media_type: str
    bounds: ChartBounds
