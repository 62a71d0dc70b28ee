"""Background sampling loop: read sensors, record readings, fire rules."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Callable, Dict, List, Optional

from datastore.readings import ReadingStore, build_default_store
from hardware.gpio import build_gpio
from hardware.sensors import SensorDriver, build_sensor_driver
from models.errors import ConfigError, StoreError
from models.records import Reading, SensorSample, humidity_series, temperature_series
from models.sensor_config import ControllerConfig, SensorConfig, build_default_config
from services.thresholds import ActuationResult, ThresholdEvaluator
from settings import get_settings

logger = logging.getLogger(__name__)

MAX_READ_RETRIES = 10


def celsius_to_fahrenheit(celsius: float) -> float:
    return celsius * 1.8 + 32


@dataclass
class CycleReport:
    """What happened to each sensor during one polling cycle."""

    timestamp: int
    recorded: List[str] = field(default_factory=list)
    discarded: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    store_failures: List[str] = field(default_factory=list)
    actuations: Dict[str, List[ActuationResult]] = field(default_factory=dict)


class SensorPoller:
    """Samples every configured sensor once per cycle, forever.

    The very first cycle that produces any successful read is treated as a
    warm-up: its samples are converted and logged but neither stored nor
    evaluated. This happens once per poller, not once per sensor.
    """

    def __init__(
        self,
        config: ControllerConfig,
        driver: SensorDriver,
        store: ReadingStore,
        evaluator: ThresholdEvaluator,
        clock: Callable[[], float] = time.time,
        max_retries: int = MAX_READ_RETRIES,
    ) -> None:
        self.config = config
        self.driver = driver
        self.store = store
        self.evaluator = evaluator
        self.max_retries = max_retries
        self.fatal_error: Optional[BaseException] = None
        self._clock = clock
        self._discard_pending = True
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self.run_forever, name="sensor-poller", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def close(self) -> None:
        """Stop polling and release the sensor devices and actuator pins."""
        self.stop()
        for resource, method in ((self.driver, "close"), (self.evaluator.gpio, "cleanup")):
            release = getattr(resource, method, None)
            if release is None:
                continue
            try:
                release()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Failed to release %s: %s", type(resource).__name__, exc)

    def run_forever(self) -> None:
        logger.info(
            "Sensor poller started for %d sensors, interval %.1fs",
            len(self.config.sensors),
            self.config.sensor_read_freq_secs,
        )
        while not self._stop_event.is_set():
            try:
                self.run_cycle()
            except ConfigError as exc:
                self.fatal_error = exc
                logger.critical("Refusing to continue polling: %s", exc)
                raise
            except Exception:  # noqa: BLE001
                logger.exception("Unexpected error during polling cycle")
            self._stop_event.wait(self.config.sensor_read_freq_secs)
        logger.info("Sensor poller stopped")

    def run_cycle(self) -> CycleReport:
        timestamp = int(self._clock())
        report = CycleReport(timestamp=timestamp)
        discard = self._discard_pending

        for sensor in self.config.sensors:
            sample = self._read_with_retry(sensor)
            if sample is None:
                report.skipped.append(sensor.name)
                continue

            temperature = celsius_to_fahrenheit(sample.temperature_c)
            if discard:
                logger.info(
                    "Discarding warm-up sample %.1fF / %.1f%%",
                    temperature,
                    sample.humidity,
                    extra={"sensor": sensor.name, "timestamp": timestamp},
                )
                report.discarded.append(sensor.name)
                continue

            if self._record(sensor, sample, temperature, timestamp):
                report.recorded.append(sensor.name)
            else:
                report.store_failures.append(sensor.name)
            report.actuations[sensor.name] = self.evaluator.evaluate(sensor, temperature)

        if discard and report.discarded:
            self._discard_pending = False

        try:
            self.store.apply_retention(timestamp)
        except StoreError as exc:
            logger.warning("Retention pass failed: %s", exc)
        return report

    def _read_with_retry(self, sensor: SensorConfig) -> Optional[SensorSample]:
        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return self.driver.read(sensor.pin)
            except ConfigError:
                raise
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "Sensor read failed: %s",
                    exc,
                    extra={"sensor": sensor.name, "pin": sensor.pin, "attempt": attempt},
                )
            if attempt < attempts and self._stop_event.wait(self.config.retry_read_secs):
                return None

        logger.error(
            "Skipping sensor for this cycle after %d failed reads",
            attempts,
            extra={"sensor": sensor.name, "pin": sensor.pin},
        )
        return None

    def _record(
        self, sensor: SensorConfig, sample: SensorSample, temperature: float, timestamp: int
    ) -> bool:
        readings = [
            Reading(series_name=temperature_series(sensor.name), timestamp=timestamp, value=temperature),
            Reading(series_name=humidity_series(sensor.name), timestamp=timestamp, value=sample.humidity),
        ]
        try:
            self.store.append_many(readings)
        except StoreError as exc:
            logger.warning(
                "Failed to record readings: %s",
                exc,
                extra={"sensor": sensor.name, "timestamp": timestamp},
            )
            return False
        logger.debug(
            "Recorded %.1fF / %.1f%%",
            temperature,
            sample.humidity,
            extra={"sensor": sensor.name, "timestamp": timestamp},
        )
        return True


@lru_cache
def build_default_poller() -> SensorPoller:
    """Factory that wires the poller to the configured drivers and store."""
    settings = get_settings()
    return SensorPoller(
        config=build_default_config(),
        driver=build_sensor_driver(settings.hardware_mode),
        store=build_default_store(),
        evaluator=ThresholdEvaluator(build_gpio(settings.hardware_mode)),
    )
