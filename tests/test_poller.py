from __future__ import annotations

import logging
import threading
from typing import Iterator, List

import pytest

from datastore.readings import ReadingStore
from hardware.gpio import SimulatedGpio
from hardware.sensors import SimulatedSensorDriver
from models.errors import ConfigError, SensorReadError
from models.records import SensorSample
from models.sensor_config import ActionRule, ConditionKind, ControllerConfig, Effect, SensorConfig
from services.poller import SensorPoller, celsius_to_fahrenheit
from services.thresholds import ThresholdEvaluator


class ScriptedDriver:
    """Returns queued samples (or raises queued errors) per pin."""

    def __init__(self) -> None:
        self.queues: dict[int, List[object]] = {}
        self.calls: List[int] = []

    def push(self, pin: int, *outcomes: object) -> None:
        self.queues.setdefault(pin, []).extend(outcomes)

    def read(self, pin: int) -> SensorSample:
        self.calls.append(pin)
        outcome = self.queues[pin].pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        assert isinstance(outcome, SensorSample)
        return outcome


class TickingClock:
    def __init__(self, start: int = 1_700_000_000, step: int = 60) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> float:
        current = self.now
        self.now += self.step
        return float(current)


def _config(*sensors: SensorConfig) -> ControllerConfig:
    return ControllerConfig(sensor_read_freq_secs=60, retry_read_secs=0, sensors=sensors)


def _sample(celsius: float = 20.0, humidity: float = 45.0) -> SensorSample:
    return SensorSample(temperature_c=celsius, humidity=humidity)


@pytest.fixture()
def store() -> Iterator[ReadingStore]:
    reading_store = ReadingStore()
    yield reading_store
    reading_store.close()


def _poller(config: ControllerConfig, driver, store: ReadingStore, gpio=None, clock=None) -> SensorPoller:
    return SensorPoller(
        config=config,
        driver=driver,
        store=store,
        evaluator=ThresholdEvaluator(gpio or SimulatedGpio()),
        clock=clock or TickingClock(),
    )


def test_celsius_to_fahrenheit() -> None:
    assert celsius_to_fahrenheit(0) == 32
    assert celsius_to_fahrenheit(100) == 212
    assert celsius_to_fahrenheit(-40) == -40


def test_first_cycle_is_discarded_for_every_sensor(store: ReadingStore) -> None:
    driver = ScriptedDriver()
    driver.push(4, _sample(20.0, 40.0), _sample(25.0, 41.0))
    driver.push(5, _sample(10.0, 60.0), _sample(12.0, 61.0))
    clock = TickingClock(start=1000, step=60)
    poller = _poller(
        _config(SensorConfig(name="inside", pin=4), SensorConfig(name="outside", pin=5)),
        driver,
        store,
        clock=clock,
    )

    first = poller.run_cycle()
    assert first.discarded == ["inside", "outside"]
    assert first.recorded == []
    assert store.series_names() == []

    second = poller.run_cycle()
    assert second.recorded == ["inside", "outside"]
    assert store.query_range("temp-inside") == [(1060, 77.0)]
    assert store.query_range("humidity-inside") == [(1060, 41.0)]
    assert store.query_range("temp-outside") == [(1060, pytest.approx(53.6))]
    assert store.query_range("humidity-outside") == [(1060, 61.0)]


def test_discarded_sample_does_not_drive_actuators(store: ReadingStore) -> None:
    gpio = SimulatedGpio()
    driver = ScriptedDriver()
    driver.push(4, _sample(0.0), _sample(0.0))
    rule = ActionRule(condition=ConditionKind.below, threshold=60, effect=Effect.enable, target_pin=17)
    poller = _poller(_config(SensorConfig(name="inside", pin=4, actions=(rule,))), driver, store, gpio=gpio)

    poller.run_cycle()
    assert gpio.states == {}

    report = poller.run_cycle()
    assert gpio.states == {17: True}
    assert [result.ok for result in report.actuations["inside"]] == [True]


def test_sensor_failing_eleven_times_is_skipped(store: ReadingStore, caplog) -> None:
    driver = ScriptedDriver()
    driver.push(4, _sample())
    driver.push(4, *[SensorReadError("checksum") for _ in range(11)])
    poller = _poller(_config(SensorConfig(name="inside", pin=4)), driver, store)
    poller.run_cycle()

    with caplog.at_level(logging.WARNING):
        report = poller.run_cycle()

    assert report.skipped == ["inside"]
    assert report.recorded == []
    assert len(driver.calls) == 12
    assert store.series_names() == []
    attempts = [
        getattr(record, "attempt")
        for record in caplog.records
        if record.name == "services.poller" and hasattr(record, "attempt")
    ]
    assert attempts == list(range(1, 12))


def test_sensor_recovering_on_last_retry_is_recorded(store: ReadingStore) -> None:
    driver = ScriptedDriver()
    driver.push(4, _sample())
    driver.push(4, *[RuntimeError("timeout") for _ in range(10)], _sample(30.0, 50.0))
    poller = _poller(_config(SensorConfig(name="inside", pin=4)), driver, store)
    poller.run_cycle()

    report = poller.run_cycle()

    assert report.recorded == ["inside"]
    assert [value for _, value in store.query_range("temp-inside")] == [86.0]


def test_skipped_first_cycle_does_not_consume_the_discard(store: ReadingStore) -> None:
    driver = ScriptedDriver()
    driver.push(4, *[SensorReadError("boom") for _ in range(11)], _sample(), _sample())
    poller = _poller(_config(SensorConfig(name="inside", pin=4)), driver, store)

    assert poller.run_cycle().skipped == ["inside"]
    assert poller.run_cycle().discarded == ["inside"]
    assert poller.run_cycle().recorded == ["inside"]


def test_duplicate_timestamp_is_logged_and_cycle_continues(store: ReadingStore, caplog) -> None:
    gpio = SimulatedGpio()
    driver = ScriptedDriver()
    driver.push(4, _sample(), _sample(), _sample(30.0))
    driver.push(5, _sample(), _sample(), _sample())
    rule = ActionRule(condition=ConditionKind.above, threshold=80, effect=Effect.enable, target_pin=17)
    frozen_clock = TickingClock(start=5000, step=0)
    poller = _poller(
        _config(SensorConfig(name="inside", pin=4, actions=(rule,)), SensorConfig(name="outside", pin=5)),
        driver,
        store,
        gpio=gpio,
        clock=frozen_clock,
    )
    poller.run_cycle()
    poller.run_cycle()

    with caplog.at_level(logging.WARNING):
        report = poller.run_cycle()

    assert report.store_failures == ["inside", "outside"]
    assert store.query_range("temp-inside") == [(5000, 68.0)]
    assert gpio.states == {17: True}
    assert any("already exists" in record.getMessage() for record in caplog.records)


def test_config_error_from_driver_propagates(store: ReadingStore) -> None:
    driver = ScriptedDriver()
    driver.push(4, ConfigError("no such pin"))
    poller = _poller(_config(SensorConfig(name="inside", pin=4)), driver, store)

    with pytest.raises(ConfigError):
        poller.run_cycle()


def test_background_thread_records_and_stops() -> None:
    recorded = threading.Event()

    class SignallingStore(ReadingStore):
        def append_many(self, readings) -> None:
            super().append_many(readings)
            recorded.set()

    signalling_store = SignallingStore()
    config = ControllerConfig(
        sensor_read_freq_secs=0.01,
        retry_read_secs=0,
        sensors=(SensorConfig(name="inside", pin=4),),
    )
    poller = SensorPoller(
        config=config,
        driver=SimulatedSensorDriver(seed=1),
        store=signalling_store,
        evaluator=ThresholdEvaluator(SimulatedGpio()),
        clock=TickingClock(),
    )

    poller.start()
    try:
        assert recorded.wait(timeout=5)
        assert poller.running
    finally:
        poller.stop()

    assert not poller.running
    assert signalling_store.query_range("temp-inside")
    assert poller.fatal_error is None


def test_background_thread_stops_on_config_error(store: ReadingStore) -> None:
    driver = ScriptedDriver()
    driver.push(4, ConfigError("unknown pin"))
    poller = _poller(_config(SensorConfig(name="inside", pin=4)), driver, store)

    with pytest.raises(ConfigError):
        poller.run_forever()

    assert isinstance(poller.fatal_error, ConfigError)


def test_retries_wait_a_constant_delay_and_not_after_the_last_failure(store: ReadingStore) -> None:
    driver = ScriptedDriver()
    driver.push(4, *[SensorReadError("checksum") for _ in range(11)])
    config = ControllerConfig(
        sensor_read_freq_secs=60,
        retry_read_secs=2.5,
        sensors=(SensorConfig(name="inside", pin=4),),
    )
    poller = _poller(config, driver, store)
    waits: List[float] = []

    def record_wait(timeout: float) -> bool:
        waits.append(timeout)
        return False

    poller._stop_event.wait = record_wait  # type: ignore[method-assign]

    report = poller.run_cycle()

    assert report.skipped == ["inside"]
    assert len(driver.calls) == 11
    assert waits == [2.5] * 10


class ReleasableDriver(ScriptedDriver):
    def __init__(self) -> None:
        super().__init__()
        self.closed = False

    def close(self) -> None:
        self.closed = True


class ReleasableGpio(SimulatedGpio):
    def __init__(self) -> None:
        super().__init__()
        self.cleaned_up = False

    def cleanup(self) -> None:
        self.cleaned_up = True


def test_close_stops_polling_and_releases_hardware(store: ReadingStore) -> None:
    driver = ReleasableDriver()
    gpio = ReleasableGpio()
    poller = _poller(_config(SensorConfig(name="inside", pin=4)), driver, store, gpio=gpio)

    poller.close()

    assert not poller.running
    assert driver.closed
    assert gpio.cleaned_up


def test_close_tolerates_drivers_without_release_hooks(store: ReadingStore) -> None:
    poller = _poller(_config(SensorConfig(name="inside", pin=4)), ScriptedDriver(), store)

    poller.close()

    assert not poller.running
