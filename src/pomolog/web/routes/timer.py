"""Timer routes: the session snapshot and the session commands."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from pomolog.core.errors import ConfigurationError, FeedbackValidationError, SessionStateError
from pomolog.core.orchestrator import get_orchestrator
from pomolog.timer.models import Mood, TimerConfiguration

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/timer", tags=["timer"])


class StartSessionRequest(BaseModel):
    """Session lengths chosen at setup."""
    total_session_minutes: int
    focus_minutes: int


class FocusFeedbackRequest(BaseModel):
    """Mood grid position and productivity rating after focus."""
    mood_x: float = Field(ge=0.0, le=1.0)
    mood_y: float = Field(ge=0.0, le=1.0)
    productivity_level: int = Field(ge=1, le=10)


class BreakFeedbackRequest(BaseModel):
    """What the break was spent on and how its length felt."""
    break_activity: str | None = Field(default=None, max_length=200)
    break_satisfaction: int = Field(default=0, ge=-10, le=10)


def _snapshot() -> dict[str, Any]:
    return get_orchestrator().coordinator.snapshot().to_dict()


def _raise_http(error: Exception) -> None:
    if isinstance(error, SessionStateError):
        raise HTTPException(status_code=409, detail=str(error)) from error
    if isinstance(error, (ConfigurationError, FeedbackValidationError)):
        raise HTTPException(status_code=422, detail=str(error)) from error
    raise error


@router.get("")
async def get_timer() -> dict[str, Any]:
    """Current session stage, countdown and progress."""
    return _snapshot()


@router.get("/defaults")
async def get_defaults() -> dict[str, int]:
    """Minutes to prefill the setup form with."""
    config = await get_orchestrator().last_setup()
    return config.to_dict()


@router.post("/start")
async def start_session(body: StartSessionRequest) -> dict[str, Any]:
    """Start the focus phase of a new session."""
    try:
        await get_orchestrator().start_session(
            TimerConfiguration(
                total_session_minutes=body.total_session_minutes,
                focus_minutes=body.focus_minutes,
            )
        )
    except (ConfigurationError, SessionStateError) as e:
        _raise_http(e)
    return _snapshot()


@router.post("/toggle")
async def pause_or_resume() -> dict[str, Any]:
    """Pause the running phase, or resume it if paused."""
    try:
        get_orchestrator().coordinator.pause_or_resume()
    except SessionStateError as e:
        _raise_http(e)
    return _snapshot()


@router.post("/reset")
async def reset() -> dict[str, Any]:
    """Abandon the current session without saving it."""
    get_orchestrator().coordinator.reset()
    return _snapshot()


@router.post("/focus-feedback")
async def submit_focus_feedback(body: FocusFeedbackRequest) -> dict[str, Any]:
    """Record focus feedback and start the break."""
    try:
        get_orchestrator().coordinator.submit_focus_feedback(
            Mood(x=body.mood_x, y=body.mood_y), body.productivity_level
        )
    except (FeedbackValidationError, SessionStateError) as e:
        _raise_http(e)
    return _snapshot()


@router.post("/break-feedback")
async def submit_break_feedback(body: BreakFeedbackRequest) -> dict[str, Any]:
    """Record break feedback, end the session and save it.

    A failed save still ends the session; the response says ``saved: false``
    and the record can be retried with ``/timer/retry-save``.
    """
    try:
        result = await get_orchestrator().coordinator.submit_break_feedback(
            body.break_activity, body.break_satisfaction
        )
    except (FeedbackValidationError, SessionStateError) as e:
        _raise_http(e)
    return {"result": result.to_dict(), "session": _snapshot()}


@router.post("/retry-save")
async def retry_save() -> dict[str, Any]:
    """Try again to save a finished session whose save failed."""
    try:
        result = await get_orchestrator().coordinator.retry_save()
    except SessionStateError as e:
        _raise_http(e)
    return {"result": result.to_dict(), "session": _snapshot()}


@router.post("/new-session")
async def start_new_session() -> dict[str, Any]:
    """Go from the end screen back to setup."""
    try:
        get_orchestrator().coordinator.start_new_session()
    except SessionStateError as e:
        _raise_http(e)
    return _snapshot()
