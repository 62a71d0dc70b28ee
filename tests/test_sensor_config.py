from __future__ import annotations

import json

import pytest

from models.errors import ConfigError
from models.sensor_config import (
    ActionRule,
    ConditionKind,
    Effect,
    load_controller_config,
    parse_controller_config,
)


def _config_payload() -> dict:
    return {
        "sensor_read_freq_secs": 30,
        "retry_read_secs": 1.5,
        "sensors": {
            "inside": {
                "pin": 4,
                "actions": [
                    {"typ": "temp below", "value": 60, "action": "enable", "pin": 17},
                    {"typ": "temp above", "value": 65.5, "action": "disable", "pin": 17},
                ],
            },
            "outside": {"pin": 22},
        },
    }


def test_parse_config_builds_ordered_sensors_and_rules() -> None:
    config = parse_controller_config(_config_payload())

    assert config.sensor_read_freq_secs == 30
    assert config.retry_read_secs == 1.5
    assert [sensor.name for sensor in config.sensors] == ["inside", "outside"]

    inside = config.sensors[0]
    assert inside.pin == 4
    assert inside.actions == (
        ActionRule(condition=ConditionKind.below, threshold=60, effect=Effect.enable, target_pin=17),
        ActionRule(condition=ConditionKind.above, threshold=65.5, effect=Effect.disable, target_pin=17),
    )
    assert config.sensors[1].actions == ()


@pytest.mark.parametrize(
    ("field", "value"),
    [("typ", "humidity below"), ("action", "toggle")],
)
def test_unknown_rule_tags_are_rejected_at_load(field: str, value: str) -> None:
    payload = _config_payload()
    payload["sensors"]["inside"]["actions"][0][field] = value

    with pytest.raises(ConfigError) as excinfo:
        parse_controller_config(payload)

    assert value in str(excinfo.value)


def test_missing_durations_are_rejected() -> None:
    payload = _config_payload()
    del payload["retry_read_secs"]

    with pytest.raises(ConfigError, match="retry_read_secs"):
        parse_controller_config(payload)


def test_non_positive_read_interval_is_rejected() -> None:
    payload = _config_payload()
    payload["sensor_read_freq_secs"] = 0

    with pytest.raises(ConfigError):
        parse_controller_config(payload)


def test_config_is_immutable() -> None:
    config = parse_controller_config(_config_payload())

    with pytest.raises(Exception):
        config.sensors[0].pin = 5  # type: ignore[misc]


def test_load_config_from_file(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps(_config_payload()))

    config = load_controller_config(path)

    assert [sensor.name for sensor in config.sensors] == ["inside", "outside"]


def test_load_config_reports_missing_file(tmp_path) -> None:
    with pytest.raises(ConfigError, match="Cannot read"):
        load_controller_config(tmp_path / "absent.json")


def test_load_config_reports_invalid_json(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{not json")

    with pytest.raises(ConfigError, match="not valid JSON"):
        load_controller_config(path)
