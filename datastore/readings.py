from __future__ import annotations

import logging
import sqlite3
from functools import lru_cache
from threading import Lock
from typing import Iterable, List, Optional, Sequence

from models.errors import DuplicateKeyError, StoreIOError
from models.records import ChartSeries, Point, Reading
from settings import get_settings

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS readings (
    name  TEXT NOT NULL,
    ts    INTEGER NOT NULL,
    value REAL NOT NULL,
    PRIMARY KEY (name, ts)
)
"""


class RetentionPolicy:
    """Decides which readings may be discarded.

    ``cutoff`` returns an epoch-second timestamp; readings strictly older than
    it are deleted. ``None`` keeps everything.
    """

    def cutoff(self, now: int) -> Optional[int]:
        raise NotImplementedError


class KeepEverything(RetentionPolicy):
    def cutoff(self, now: int) -> Optional[int]:
        return None


class ReadingStore:
    """Time-series table of ``(series_name, timestamp, value)`` triples.

    A single sqlite connection is shared by the poller thread and the request
    workers; every interaction with it happens while holding ``_lock``.
    """

    def __init__(
        self,
        path: str = ":memory:",
        retention: Optional[RetentionPolicy] = None,
    ) -> None:
        self.path = path
        self.retention = retention or KeepEverything()
        self._lock = Lock()
        try:
            self._conn = sqlite3.connect(path, check_same_thread=False)
            with self._conn:
                self._conn.execute(_SCHEMA)
        except sqlite3.Error as exc:
            raise StoreIOError(f"Cannot open reading store at {path!r}: {exc}") from exc

    def append(self, series_name: str, timestamp: int, value: float) -> None:
        self.append_many([Reading(series_name=series_name, timestamp=timestamp, value=value)])

    def append_many(self, readings: Iterable[Reading]) -> None:
        """Insert all readings in one transaction, or none of them."""
        batch = list(readings)
        if not batch:
            return
        with self._lock:
            try:
                with self._conn:
                    for reading in batch:
                        self._insert(reading)
            except sqlite3.Error as exc:
                raise StoreIOError(f"Failed to write readings: {exc}") from exc

    def query_range(self, series_name: str) -> List[Point]:
        with self._lock:
            return self._select(series_name)

    def query_ranges(self, series_names: Sequence[str]) -> List[ChartSeries]:
        """Read several series under one lock acquisition."""
        with self._lock:
            return [ChartSeries(name=name, points=self._select(name)) for name in series_names]

    def series_names(self) -> List[str]:
        with self._lock:
            try:
                rows = self._conn.execute(
                    "SELECT DISTINCT name FROM readings ORDER BY name"
                ).fetchall()
            except sqlite3.Error as exc:
                raise StoreIOError(f"Failed to list series: {exc}") from exc
        return [row[0] for row in rows]

    def apply_retention(self, now: int) -> int:
        cutoff = self.retention.cutoff(now)
        if cutoff is None:
            return 0
        with self._lock:
            try:
                with self._conn:
                    cursor = self._conn.execute("DELETE FROM readings WHERE ts < ?", (cutoff,))
            except sqlite3.Error as exc:
                raise StoreIOError(f"Failed to apply retention: {exc}") from exc
        if cursor.rowcount:
            logger.info("Pruned %d readings", cursor.rowcount, extra={"timestamp": cutoff})
        return cursor.rowcount

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _insert(self, reading: Reading) -> None:
        try:
            self._conn.execute(
                "INSERT INTO readings (name, ts, value) VALUES (?, ?, ?)",
                (reading.series_name, int(reading.timestamp), float(reading.value)),
            )
        except sqlite3.IntegrityError as exc:
            if "UNIQUE" in str(exc):
                raise DuplicateKeyError(reading.series_name, reading.timestamp) from exc
            raise

    def _select(self, series_name: str) -> List[Point]:
        try:
            rows = self._conn.execute(
                "SELECT ts, value FROM readings WHERE name = ? ORDER BY ts",
                (series_name,),
            ).fetchall()
        except sqlite3.Error as exc:
            raise StoreIOError(f"Failed to query series {series_name!r}: {exc}") from exc
        return [(int(ts), float(value)) for ts, value in rows]


@lru_cache
def build_default_store(path: Optional[str] = None) -> ReadingStore:
    db_path = get_settings().db_path if path is None else path
    return ReadingStore(path=db_path)
