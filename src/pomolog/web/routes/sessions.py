"""Saved session history and summary routes."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query

from pomolog.core.errors import MissingIdentityError, PersistenceError
from pomolog.core.orchestrator import get_orchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.get("")
async def list_sessions(limit: int = Query(default=20, ge=1, le=500)) -> list[dict[str, Any]]:
    """The current user's sessions, newest first."""
    try:
        records = await get_orchestrator().recent_sessions(limit=limit)
    except MissingIdentityError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e
    except PersistenceError as e:
        logger.error(f"Failed to load sessions: {e}")
        raise HTTPException(status_code=502, detail=str(e)) from e

    return [record.to_db_dict() | {"id": record.id} for record in records]


@router.get("/stats")
async def session_stats(days: int = Query(default=7, ge=1, le=365)) -> dict[str, Any]:
    """Minutes, productive share and daily totals for the last ``days`` days."""
    try:
        stats = await get_orchestrator().session_stats(days=days)
    except MissingIdentityError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e
    except PersistenceError as e:
        logger.error(f"Failed to compute session stats: {e}")
        raise HTTPException(status_code=502, detail=str(e)) from e

    return stats.to_dict()
