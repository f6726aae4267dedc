"""General API routes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel

from pomolog.core.orchestrator import get_orchestrator

router = APIRouter(tags=["api"])


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    stage: str
    store: str
    signed_in: bool
    database: dict[str, Any] | None = None


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """API health check."""
    health = await get_orchestrator().get_health()
    return HealthResponse(
        status=health["status"],
        stage=health["stage"],
        store=health["store"],
        signed_in=health["signed_in"],
        database=health.get("database"),
    )
