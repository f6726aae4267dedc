"""Pomodoro session timer: countdown engine and session coordinator."""

from pomolog.timer.coordinator import SaveResult, SessionCoordinator, SessionSnapshot
from pomolog.timer.engine import TimerEngine
from pomolog.timer.models import (
    EnginePhase,
    FeedbackRecord,
    Mood,
    SessionRecord,
    SessionStage,
    TimerConfiguration,
    TimerSnapshot,
)
from pomolog.timer.scheduler import AsyncioScheduler

__all__ = [
    "AsyncioScheduler",
    "EnginePhase",
    "FeedbackRecord",
    "Mood",
    "SaveResult",
    "SessionCoordinator",
    "SessionRecord",
    "SessionSnapshot",
    "SessionStage",
    "TimerConfiguration",
    "TimerEngine",
    "TimerSnapshot",
]
