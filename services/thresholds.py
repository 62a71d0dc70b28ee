"""Threshold rules that map a sensor's temperature to actuator pin levels."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

from hardware.gpio import GpioDriver
from models.errors import ConfigError
from models.sensor_config import ActionRule, ConditionKind, Effect, SensorConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActuationResult:
    """Outcome of one fired rule."""

    rule: ActionRule
    high: bool
    ok: bool
    error: str | None = None


def rule_matches(rule: ActionRule, value: float) -> bool:
    """Strict comparison: a value equal to the threshold never matches."""
    if rule.condition is ConditionKind.below:
        return value < rule.threshold
    if rule.condition is ConditionKind.above:
        return value > rule.threshold
    raise ConfigError(f"Unknown rule condition {rule.condition!r}")


def target_level(rule: ActionRule) -> bool:
    if rule.effect is Effect.enable:
        return True
    if rule.effect is Effect.disable:
        return False
    raise ConfigError(f"Unknown rule effect {rule.effect!r}")


class ThresholdEvaluator:
    """Evaluates a sensor's rules in configured order and drives their pins.

    Every matching rule fires. When several rules drive the same pin, the
    last one to fire determines the final level.
    """

    def __init__(self, gpio: GpioDriver) -> None:
        self.gpio = gpio

    def evaluate(self, sensor: SensorConfig, value: float) -> List[ActuationResult]:
        results: List[ActuationResult] = []
        for rule in sensor.actions:
            if not rule_matches(rule, value):
                continue
            high = target_level(rule)
            results.append(self._drive(sensor, rule, high))
        return results

    def _drive(self, sensor: SensorConfig, rule: ActionRule, high: bool) -> ActuationResult:
        try:
            if high:
                self.gpio.set_high(rule.target_pin)
            else:
                self.gpio.set_low(rule.target_pin)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Failed to drive actuator pin: %s",
                exc,
                extra={"sensor": sensor.name, "pin": rule.target_pin},
            )
            return ActuationResult(rule=rule, high=high, ok=False, error=str(exc))

        logger.info(
            "Rule %s %.1f fired, pin set %s",
            rule.condition.value,
            rule.threshold,
            "high" if high else "low",
            extra={"sensor": sensor.name, "pin": rule.target_pin},
        )
        return ActuationResult(rule=rule, high=high, ok=True)
