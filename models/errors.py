"""Exception hierarchy shared by the store, poller, evaluator and renderer.

The HTTP layer maps :class:`RequestError` subclasses to client errors and
:class:`RenderBackendError` to server errors. Background-loop errors are only
ever logged, except :class:`ConfigError`, which stops the poller.
"""

from __future__ import annotations


class ClimateMonitorError(Exception):
    """Base class for all application errors."""


class SensorReadError(ClimateMonitorError):
    """A single sensor read failed; the poller retries it."""


class StoreError(ClimateMonitorError):
    """The reading store rejected or failed a write or query."""


class DuplicateKeyError(StoreError):
    """A reading with the same ``(series_name, timestamp)`` already exists."""

    def __init__(self, series_name: str, timestamp: int) -> None:
        super().__init__(
            f"Reading for series {series_name!r} at timestamp {timestamp} already exists."
        )
        self.series_name = series_name
        self.timestamp = timestamp


class StoreIOError(StoreError):
    """The storage backend failed."""


class ConfigError(ClimateMonitorError):
    """Configuration is missing, malformed or names an unknown rule kind."""


class GpioError(ClimateMonitorError):
    """A GPIO pin could not be acquired or driven."""


class RequestError(ClimateMonitorError):
    """A chart request cannot be served; reported to the client."""


class BadRequestError(RequestError):
    """The query string is malformed or incomplete."""


class NoDataError(RequestError):
    """There is not enough stored data to draw the requested chart."""


class RenderBackendError(ClimateMonitorError):
    """The drawing backend failed while producing the image."""
