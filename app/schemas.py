"""Pydantic schemas for the JSON endpoints."""

from __future__ import annotations

from typing import List, Literal

from pydantic import BaseModel, Field


class SeriesListResponse(BaseModel):
    """Names of every series that has at least one stored reading."""

    series: List[str] = Field(default_factory=list)


class HealthResponse(BaseModel):
    status: str = "ok"
    poller: Literal["running", "stopped", "failed", "disabled"] = Field(
        ..., description="State of the background sensor poller."
    )
