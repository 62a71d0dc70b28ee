"""Output-pin drivers for actuators (relays, heaters, fans)."""

from __future__ import annotations

import logging
from threading import Lock
from typing import Any, Dict, Iterable, Optional, Protocol, Set

from models.errors import GpioError

logger = logging.getLogger(__name__)


class GpioDriver(Protocol):
    def set_high(self, pin: int) -> None:
        ...

    def set_low(self, pin: int) -> None:
        ...


class SimulatedGpio:
    """Keeps pin levels in memory. Pins listed in ``failing_pins`` raise."""

    def __init__(self, failing_pins: Optional[Iterable[int]] = None) -> None:
        self.states: Dict[int, bool] = {}
        self.history: list[tuple[int, bool]] = []
        self._failing_pins: Set[int] = set(failing_pins or ())
        self._lock = Lock()

    def set_high(self, pin: int) -> None:
        self._set(pin, True)

    def set_low(self, pin: int) -> None:
        self._set(pin, False)

    def _set(self, pin: int, high: bool) -> None:
        with self._lock:
            if pin in self._failing_pins:
                raise GpioError(f"Simulated failure driving pin {pin}")
            self.states[pin] = high
            self.history.append((pin, high))


class RPiGpio:
    """Drives BCM-numbered pins through ``RPi.GPIO``.

    Pins are configured as outputs the first time they are driven.
    """

    def __init__(self) -> None:
        import RPi.GPIO as GPIO  # type: ignore

        self.GPIO: Any = GPIO
        self.GPIO.setwarnings(False)
        self.GPIO.setmode(self.GPIO.BCM)
        self._configured: Set[int] = set()
        self._lock = Lock()

    def set_high(self, pin: int) -> None:
        self._output(pin, self.GPIO.HIGH)

    def set_low(self, pin: int) -> None:
        self._output(pin, self.GPIO.LOW)

    def cleanup(self) -> None:
        with self._lock:
            if self._configured:
                self.GPIO.cleanup(list(self._configured))
                self._configured.clear()

    def _output(self, pin: int, level: Any) -> None:
        with self._lock:
            try:
                if pin not in self._configured:
                    self.GPIO.setup(pin, self.GPIO.OUT)
                    self._configured.add(pin)
                    logger.info("GPIO pin configured as output", extra={"pin": pin})
                self.GPIO.output(pin, level)
            except (RuntimeError, ValueError) as exc:
                raise GpioError(f"Cannot drive GPIO pin {pin}: {exc}") from exc


def build_gpio(hardware_mode: str) -> GpioDriver:
    if hardware_mode == "gpio":
        return RPiGpio()
    return SimulatedGpio()
