from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


_CONFIG_PATH_ENV = "CLIMATE_CONFIG_PATH"
_DB_PATH_ENV = "READINGS_DB_PATH"
_WORKER_COUNT_ENV = "HTTP_WORKER_COUNT"
_PORT_ENV = "HTTP_PORT"
_HARDWARE_MODE_ENV = "HARDWARE_MODE"
_POLLER_ENABLED_ENV = "POLLER_ENABLED"
_SEED_SAMPLE_DATA_ENV = "SEED_SAMPLE_DATA"
_LOG_LEVEL_ENV = "LOG_LEVEL"

HARDWARE_MODES = ("simulated", "gpio")

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    config_path: str
    db_path: str
    http_workers: int
    http_port: int
    hardware_mode: str
    poller_enabled: bool
    seed_sample_data: bool
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if candidate in _TRUTHY:
        return True
    if candidate in _FALSY:
        return False
    return default


def _read_hardware_mode(default: str) -> str:
    candidate = _read_str_env(_HARDWARE_MODE_ENV, default).lower()
    return candidate if candidate in HARDWARE_MODES else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        config_path=_read_str_env(_CONFIG_PATH_ENV, "./config.json"),
        db_path=_read_str_env(_DB_PATH_ENV, ":memory:"),
        http_workers=_read_positive_int(_WORKER_COUNT_ENV, 4),
        http_port=_read_positive_int(_PORT_ENV, 3000),
        hardware_mode=_read_hardware_mode("simulated"),
        poller_enabled=_read_bool(_POLLER_ENABLED_ENV, True),
        seed_sample_data=_read_bool(_SEED_SAMPLE_DATA_ENV, False),
        log_level=_read_log_level("INFO"),
    )
