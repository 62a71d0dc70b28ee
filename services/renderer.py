"""Multi-series SVG line charts of stored readings."""

from __future__ import annotations

import io
import logging
import math
import time
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence, Tuple

import matplotlib

matplotlib.use("Agg")
# Emit <text> elements rather than glyph outlines.
matplotlib.rcParams["svg.fonttype"] = "none"

import matplotlib.dates as mdates  # noqa: E402
from matplotlib.figure import Figure  # noqa: E402

from datastore.readings import ReadingStore  # noqa: E402
from models.errors import (  # noqa: E402
    BadRequestError,
    NoDataError,
    RenderBackendError,
    StoreError,
)
from models.records import ChartBounds, ChartRequest, ChartSeries, RenderedChart  # noqa: E402

logger = logging.getLogger(__name__)

SVG_MEDIA_TYPE = "image/svg+xml"
CANVAS_SIZE = (640, 480)
DPI = 100
FLAT_MARGIN = 10.0
TIME_FORMAT = "%a %H:%M"
LEGEND_LOCATION = "upper right"

# Indexed by the series' position in the request; wraps around.
PALETTE = (
    "#d62728",
    "#1f77b4",
    "#2ca02c",
    "#ff7f0e",
    "#9467bd",
    "#8c564b",
    "#e377c2",
    "#17becf",
)

_QUERY_KEYS = ("name", "xmin", "xmax", "title")


def series_color(index: int) -> str:
    return PALETTE[index % len(PALETTE)]


def _parse_bound(key: str, raw: str) -> float:
    try:
        value = float(raw)
    except ValueError as exc:
        raise BadRequestError(f"{key} must be a number, got {raw!r}") from exc
    if not math.isfinite(value):
        raise BadRequestError(f"{key} must be finite, got {raw!r}")
    return value


def parse_chart_request(query_items: Iterable[Tuple[str, str]]) -> ChartRequest:
    """Build a :class:`ChartRequest` from raw ``(key, value)`` query pairs.

    ``name`` may repeat and keeps its first-seen order; ``xmin``, ``xmax`` and
    ``title`` may appear at most once. Unknown keys are rejected.
    """
    names: List[str] = []
    singles: dict[str, str] = {}

    for key, value in query_items:
        if key not in _QUERY_KEYS:
            raise BadRequestError(f"unknown query parameter: {key}")
        if key == "name":
            name = value.strip()
            if not name:
                raise BadRequestError("name must not be empty")
            if name not in names:
                names.append(name)
            continue
        if key in singles:
            raise BadRequestError(f"{key} given more than once")
        singles[key] = value

    if "title" not in singles:
        raise BadRequestError("missing required parameter: title")
    if not names:
        raise BadRequestError("at least one name parameter is required")

    x_min = _parse_bound("xmin", singles["xmin"]) if "xmin" in singles else None
    x_max = _parse_bound("xmax", singles["xmax"]) if "xmax" in singles else None
    if x_min is not None and x_max is not None and x_min >= x_max:
        raise BadRequestError(f"xmin ({x_min:g}) must be less than xmax ({x_max:g})")

    return ChartRequest(series_names=tuple(names), title=singles["title"], x_min=x_min, x_max=x_max)


def compute_bounds(series: Sequence[ChartSeries], request: ChartRequest) -> ChartBounds:
    """Shared time and value ranges across every requested series."""
    time_min: Optional[int] = None
    time_max: Optional[int] = None
    value_min = math.inf
    value_max = -math.inf

    for item in series:
        if not item.points:
            raise NoDataError(f"no data for series {item.name!r}")
        for timestamp, value in item.points:
            time_min = timestamp if time_min is None else min(time_min, timestamp)
            time_max = timestamp if time_max is None else max(time_max, timestamp)
            value_min = min(value_min, value)
            value_max = max(value_max, value)

    if time_min is None or time_max is None or time_min == time_max:
        raise NoDataError("not enough data to draw a line: need at least two distinct timestamps")

    if value_min == value_max:
        value_min -= FLAT_MARGIN
        value_max += FLAT_MARGIN

    if request.x_min is not None:
        value_min = request.x_min
    if request.x_max is not None:
        value_max = request.x_max
    if value_min >= value_max:
        raise BadRequestError(
            f"value axis would be inverted: [{value_min:g}, {value_max:g}]"
        )

    return ChartBounds(
        time_min=time_min,
        time_max=time_max,
        value_min=value_min,
        value_max=value_max,
    )


def _as_datetime(timestamp: int) -> datetime:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


class ChartRenderer:
    """Queries the store for a snapshot of the requested series and draws it."""

    def __init__(self, store: ReadingStore) -> None:
        self.store = store

    def render(self, request: ChartRequest) -> RenderedChart:
        start_time = time.perf_counter()
        try:
            series = self.store.query_ranges(request.series_names)
        except StoreError as exc:
            raise RenderBackendError(f"Failed to load chart data: {exc}") from exc

        bounds = compute_bounds(series, request)

        try:
            content = self._draw(request, series, bounds)
        except Exception as exc:  # noqa: BLE001
            raise RenderBackendError(f"Failed to render chart: {exc}") from exc

        logger.info(
            "Rendered chart %r",
            request.title,
            extra={
                "series_count": len(series),
                "render_ms": int((time.perf_counter() - start_time) * 1000),
            },
        )
        return RenderedChart(content=content, media_type=SVG_MEDIA_TYPE, bounds=bounds)

    @staticmethod
    def _draw(request: ChartRequest, series: Sequence[ChartSeries], bounds: ChartBounds) -> bytes:
        width, height = CANVAS_SIZE
        figure = Figure(figsize=(width / DPI, height / DPI), dpi=DPI)
        axes = figure.subplots()
        axes.set_title(request.title)

        for index, item in enumerate(series):
            axes.plot(
                [_as_datetime(timestamp) for timestamp, _ in item.points],
                [value for _, value in item.points],
                color=series_color(index),
                linewidth=1.2,
                label=item.name,
            )

        axes.set_xlim(_as_datetime(bounds.time_min), _as_datetime(bounds.time_max))
        axes.set_ylim(bounds.value_min, bounds.value_max)
        axes.xaxis.set_major_locator(mdates.AutoDateLocator(maxticks=6))
        axes.xaxis.set_major_formatter(mdates.DateFormatter(TIME_FORMAT, tz=timezone.utc))
        axes.tick_params(axis="x", labelsize=8)
        axes.grid(True, alpha=0.3)
        axes.legend(loc=LEGEND_LOCATION, fontsize=8)
        figure.subplots_adjust(left=0.1, right=0.97, top=0.92, bottom=0.1)

        buffer = io.BytesIO()
        figure.savefig(buffer, format="svg", metadata={"Date": None})
        return buffer.getvalue()
