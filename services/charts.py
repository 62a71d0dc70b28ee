"""Fixed-size worker pool that serves chart renders for the HTTP layer."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from functools import lru_cache
from typing import Iterable, List, Optional, Tuple

from datastore.readings import ReadingStore, build_default_store
from models.records import RenderedChart
from services.renderer import ChartRenderer, parse_chart_request
from settings import get_settings


class ChartService:
    """Parses render queries and draws charts on a bounded thread pool."""

    def __init__(self, store: ReadingStore, renderer: ChartRenderer, workers: int = 4) -> None:
        self.store = store
        self.renderer = renderer
        self.executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="render")

    def submit(self, query_items: Iterable[Tuple[str, str]]) -> Future[RenderedChart]:
        items = list(query_items)
        return self.executor.submit(self._render, items)

    def list_series(self) -> List[str]:
        return self.store.series_names()

    def shutdown(self) -> None:
        """Release worker threads during application shutdown."""
        self.executor.shutdown(wait=False, cancel_futures=True)

    def _render(self, query_items: List[Tuple[str, str]]) -> RenderedChart:
        request = parse_chart_request(query_items)
        return self.renderer.render(request)


@lru_cache
def build_default_chart_service(workers: Optional[int] = None) -> ChartService:
    """Factory that wires the chart service to the shared reading store."""
    store = build_default_store()
    worker_count = workers or get_settings().http_workers
    return ChartService(store=store, renderer=ChartRenderer(store), workers=worker_count)
