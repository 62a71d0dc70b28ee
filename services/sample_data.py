"""Demo history so charts have something to show before the poller catches up."""

from __future__ import annotations

import logging
import random
import time
from typing import Optional

from datastore.readings import ReadingStore
from hardware.sensors import walk
from models.records import Reading

logger = logging.getLogger(__name__)

SAMPLE_POINTS = 1000
SAMPLE_SPACING_SECS = 5 * 60

# series name -> (step, low, high)
SAMPLE_SERIES = {
    "temp-inside": (2.0, 30.0, 70.0),
    "temp-outside": (4.0, 10.0, 90.0),
}


def seed_sample_data(
    store: ReadingStore,
    now: Optional[int] = None,
    points: int = SAMPLE_POINTS,
    seed: Optional[int] = None,
) -> int:
    """Write ``points`` readings per sample series ending at ``now``."""
    rng = random.Random(seed)
    end = int(time.time()) if now is None else now
    values = {name: rng.uniform(low, high) for name, (_, low, high) in SAMPLE_SERIES.items()}

    readings = []
    for index in range(points):
        timestamp = end - index * SAMPLE_SPACING_SECS
        for name, (step, low, high) in SAMPLE_SERIES.items():
            values[name] = walk(rng, values[name], step, low, high)
            readings.append(Reading(series_name=name, timestamp=timestamp, value=values[name]))

    store.append_many(readings)
    logger.info("Seeded %d sample readings", len(readings))
    return len(readings)
