from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter
from fastapi.responses import HTMLResponse

INDEX_PATH = Path(__file__).resolve().parent / "static" / "index.html"

router = APIRouter(include_in_schema=False)


@router.get("/", name="index", response_class=HTMLResponse)
async def index() -> HTMLResponse:
    return HTMLResponse(INDEX_PATH.read_bytes())
