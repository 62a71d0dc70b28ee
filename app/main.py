from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import PlainTextResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api import router
from app.web import router as web_router
from datastore.readings import build_default_store
from logging_config import configure_logging
from services.charts import build_default_chart_service
from services.poller import build_default_poller
from services.sample_data import seed_sample_data
from settings import get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    store = build_default_store()
    if settings.seed_sample_data and not store.series_names():
        seed_sample_data(store)

    charts = build_default_chart_service()
    poller = build_default_poller() if settings.poller_enabled else None
    app.state.poller = poller
    if poller is not None:
        poller.start()
    try:
        yield
    finally:
        if poller is not None:
            poller.close()
            build_default_poller.cache_clear()
        charts.shutdown()
        build_default_chart_service.cache_clear()


async def _unknown_path_handler(request: Request, exc: StarletteHTTPException) -> Response:
    if exc.status_code == 404:
        logger.info("Unknown path requested", extra={"path": request.url.path, "status": 404})
        return PlainTextResponse(f"unknown path: {request.url.path}", status_code=404)
    return await http_exception_handler(request, exc)


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Climate Monitor",
        description="Samples temperature/humidity sensors, drives actuators and charts the history.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_exception_handler(StarletteHTTPException, _unknown_path_handler)
    app.include_router(router)
    app.include_router(web_router)
    return app


app = create_app()
