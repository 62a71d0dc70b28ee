"""HTTP route definitions for the chart service."""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import PlainTextResponse

from app.schemas import HealthResponse, SeriesListResponse
from models.errors import RenderBackendError, RequestError
from services.charts import ChartService, build_default_chart_service
from services.renderer import SVG_MEDIA_TYPE

logger = logging.getLogger(__name__)

router = APIRouter()


def get_chart_service() -> ChartService:
    return build_default_chart_service()


@router.get(
    "/render",
    response_class=Response,
    responses={
        200: {"content": {SVG_MEDIA_TYPE: {}}, "description": "Rendered chart."},
        400: {"content": {"text/plain": {}}, "description": "Bad request or no data."},
        500: {"content": {"text/plain": {}}, "description": "Rendering failed."},
    },
    summary="Render stored series as an SVG line chart.",
)
async def render_chart(
    request: Request,
    charts: ChartService = Depends(get_chart_service),
) -> Response:
    future = charts.submit(request.query_params.multi_items())
    try:
        chart = await asyncio.wrap_future(future)
    except RequestError as exc:
        logger.info(
            "Rejected chart request: %s",
            exc,
            extra={"path": request.url.path, "status": status.HTTP_400_BAD_REQUEST},
        )
        return PlainTextResponse(str(exc), status_code=status.HTTP_400_BAD_REQUEST)
    except RenderBackendError as exc:
        logger.error(
            "Chart rendering failed: %s",
            exc,
            extra={"path": request.url.path, "status": status.HTTP_500_INTERNAL_SERVER_ERROR},
        )
        return PlainTextResponse(str(exc), status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
    return Response(content=chart.content, media_type=chart.media_type)


@router.get(
    "/series",
    response_model=SeriesListResponse,
    summary="List the names of all stored series.",
)
async def list_series(
    charts: ChartService = Depends(get_chart_service),
) -> SeriesListResponse:
    names = await asyncio.to_thread(charts.list_series)
    return SeriesListResponse(series=names)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck(request: Request) -> HealthResponse:
    poller = getattr(request.app.state, "poller", None)
    if poller is None:
        poller_state = "disabled"
    elif poller.fatal_error is not None:
        poller_state = "failed"
    elif poller.running:
        poller_state = "running"
    else:
        poller_state = "stopped"
    return HealthResponse(status="ok", poller=poller_state)
