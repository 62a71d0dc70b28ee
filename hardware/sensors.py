"""Temperature/humidity sensor drivers.

The poller only relies on :class:`SensorDriver`: one blocking ``read`` per
pin that either returns a :class:`SensorSample` or raises
:class:`SensorReadError`.
"""

from __future__ import annotations

import logging
import random
from threading import Lock
from typing import Any, Dict, Mapping, Optional, Protocol, Tuple

from models.errors import ConfigError, SensorReadError
from models.records import SensorSample

logger = logging.getLogger(__name__)


class SensorDriver(Protocol):
    def read(self, pin: int) -> SensorSample:
        ...


def walk(rng: random.Random, value: float, step: float, low: float, high: float) -> float:
    """Move ``value`` by a uniform random step and clamp it to ``[low, high]``."""
    candidate = value + rng.uniform(-step, step)
    return min(max(candidate, low), high)


class SimulatedSensorDriver:
    """Random-walk sensor used off the Pi and in demos.

    ``failures`` maps a pin to the number of upcoming reads that should fail,
    which lets callers exercise the poller's retry path.
    """

    TEMPERATURE_RANGE = (10.0, 35.0)
    HUMIDITY_RANGE = (30.0, 80.0)

    def __init__(
        self,
        seed: Optional[int] = None,
        failures: Optional[Mapping[int, int]] = None,
    ) -> None:
        self._rng = random.Random(seed)
        self._state: Dict[int, Tuple[float, float]] = {}
        self._failures: Dict[int, int] = dict(failures or {})
        self._lock = Lock()

    def fail_next(self, pin: int, count: int) -> None:
        with self._lock:
            self._failures[pin] = self._failures.get(pin, 0) + count

    def read(self, pin: int) -> SensorSample:
        with self._lock:
            pending = self._failures.get(pin, 0)
            if pending > 0:
                self._failures[pin] = pending - 1
                raise SensorReadError(f"Simulated read failure on pin {pin}")

            temperature, humidity = self._state.get(pin, (21.0, 50.0))
            temperature = walk(self._rng, temperature, 0.5, *self.TEMPERATURE_RANGE)
            humidity = walk(self._rng, humidity, 2.0, *self.HUMIDITY_RANGE)
            self._state[pin] = (temperature, humidity)
        return SensorSample(temperature_c=temperature, humidity=humidity)


class DhtSensorDriver:
    """DHT22 sensors read through Adafruit CircuitPython on a Raspberry Pi."""

    def __init__(self) -> None:
        import adafruit_dht  # type: ignore
        import board  # type: ignore

        self._adafruit_dht = adafruit_dht
        self._board = board
        self._devices: Dict[int, Any] = {}
        self._lock = Lock()

    def read(self, pin: int) -> SensorSample:
        with self._lock:
            device = self._device(pin)
            try:
                temperature = device.temperature
                humidity = device.humidity
            except RuntimeError as exc:
                # Checksum and timing errors are routine on DHT sensors.
                raise SensorReadError(f"DHT read on pin {pin} failed: {exc}") from exc
        if temperature is None or humidity is None:
            raise SensorReadError(f"DHT read on pin {pin} returned no data")
        return SensorSample(temperature_c=float(temperature), humidity=float(humidity))

    def close(self) -> None:
        with self._lock:
            for device in self._devices.values():
                device.exit()
            self._devices.clear()

    def _device(self, pin: int) -> Any:
        device = self._devices.get(pin)
        if device is not None:
            return device
        board_pin = getattr(self._board, f"D{pin}", None)
        if board_pin is None:
            raise ConfigError(f"GPIO pin D{pin} is not available on this board")
        device = self._adafruit_dht.DHT22(board_pin, use_pulseio=False)
        self._devices[pin] = device
        logger.info("DHT22 sensor initialised", extra={"pin": pin})
        return device


def build_sensor_driver(hardware_mode: str) -> SensorDriver:
    if hardware_mode == "gpio":
        return DhtSensorDriver()
    return SimulatedSensorDriver()
