"""Session coordinator: sequences focus, feedback and break on top of the engine."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pomolog.core.errors import MissingIdentityError, PersistenceError, SessionStateError
from pomolog.timer.engine import PhaseCompletedListener, TimerEngine
from pomolog.timer.models import (
    EnginePhase,
    FeedbackRecord,
    Mood,
    SessionRecord,
    SessionStage,
    TimerConfiguration,
    TimerSnapshot,
    validate_productivity,
    validate_satisfaction,
)

if TYPE_CHECKING:
    from pomolog.storage.session_store import SessionStore

logger = logging.getLogger(__name__)

IdentityProvider = Callable[[], str | None]

# Stages in which each command is accepted
_ALLOWED: dict[str, frozenset[SessionStage]] = {
    "start session": frozenset({SessionStage.SETUP}),
    "pause or resume": frozenset({SessionStage.FOCUS, SessionStage.BREAK}),
    "submit focus feedback": frozenset({SessionStage.FOCUS_FEEDBACK}),
    "submit break feedback": frozenset({SessionStage.BREAK_FEEDBACK}),
    "start a new session": frozenset({SessionStage.SESSION_END}),
    "retry save": frozenset({SessionStage.SESSION_END}),
}

# Stage the coordinator moves to when the engine finishes a phase
_ON_COMPLETED: dict[tuple[SessionStage, EnginePhase], SessionStage] = {
    (SessionStage.FOCUS, EnginePhase.FOCUS): SessionStage.FOCUS_FEEDBACK,
    (SessionStage.BREAK, EnginePhase.BREAK): SessionStage.BREAK_FEEDBACK,
}


@dataclass
class SaveResult:
    """Outcome of handing a finished session to the store."""
    ok: bool
    record: SessionRecord | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "saved": self.ok,
            "error": self.error,
            "record": self.record.to_db_dict() | {"id": self.record.id} if self.record else None,
        }


@dataclass(frozen=True)
class SessionSnapshot:
    """Everything a view needs to render the current session."""
    stage: SessionStage
    timer: TimerSnapshot
    configuration: TimerConfiguration | None
    completion_count: int
    last_completed_phase: EnginePhase | None
    has_unsaved_record: bool
    last_save_error: str | None = None
    feedback: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage.value,
            "timer": self.timer.to_dict(),
            "configuration": self.configuration.to_dict() if self.configuration else None,
            "completion_count": self.completion_count,
            "last_completed_phase": (
                self.last_completed_phase.value if self.last_completed_phase else None
            ),
            "has_unsaved_record": self.has_unsaved_record,
            "last_save_error": self.last_save_error,
            "feedback": self.feedback,
        }


class SessionCoordinator:
    """Drives one focus/break session from setup to its saved record.

    Stages: SETUP -> FOCUS -> FOCUS_FEEDBACK -> BREAK -> BREAK_FEEDBACK
    -> SESSION_END. ``reset()`` abandons the session from any stage without
    saving it.

    Usage:
        coordinator = SessionCoordinator(engine, store, identity=lambda: "user-1")
        coordinator.start_session(TimerConfiguration(30, 25))
        # ... engine counts down focus ...
        coordinator.submit_focus_feedback(Mood(0.6, 0.4), productivity=8)
        # ... engine counts down break ...
        result = await coordinator.submit_break_feedback("walk", -2)
    """

    def __init__(
        self,
        engine: TimerEngine,
        store: SessionStore,
        identity: IdentityProvider,
    ):
        self._engine = engine
        self._store = store
        self._identity = identity

        self._stage = SessionStage.SETUP
        self._config: TimerConfiguration | None = None
        self._feedback = FeedbackRecord()

        self._completion_count = 0
        self._last_completed_phase: EnginePhase | None = None

        self._pending_record: SessionRecord | None = None
        self._last_saved_record: SessionRecord | None = None
        self._last_save_error: str | None = None
        self._saving = False

        # Registered first so views subscribed later see the updated stage
        self._engine.subscribe(self._on_phase_completed)

    # Observation

    @property
    def stage(self) -> SessionStage:
        return self._stage

    @property
    def engine(self) -> TimerEngine:
        return self._engine

    @property
    def configuration(self) -> TimerConfiguration | None:
        return self._config

    @property
    def pending_record(self) -> SessionRecord | None:
        """Finished session whose save has not succeeded yet."""
        return self._pending_record

    @property
    def last_saved_record(self) -> SessionRecord | None:
        return self._last_saved_record

    @property
    def completion_count(self) -> int:
        return self._completion_count

    def subscribe(self, listener: PhaseCompletedListener) -> None:
        """Receive the engine's phase-completed signal, after the coordinator."""
        self._engine.subscribe(listener)

    def unsubscribe(self, listener: PhaseCompletedListener) -> None:
        self._engine.unsubscribe(listener)

    def snapshot(self) -> SessionSnapshot:
        feedback: dict[str, Any] = {}
        if self._feedback.mood is not None:
            feedback["mood_x"] = self._feedback.mood.x
            feedback["mood_y"] = self._feedback.mood.y
            feedback["mood_color"] = self._feedback.mood.color
        if self._feedback.productivity_level is not None:
            feedback["prod_level"] = self._feedback.productivity_level
        if self._feedback.break_satisfaction is not None:
            feedback["break_activity"] = self._feedback.break_activity
            feedback["break_satisfaction"] = self._feedback.break_satisfaction

        return SessionSnapshot(
            stage=self._stage,
            timer=self._engine.snapshot(),
            configuration=self._config,
            completion_count=self._completion_count,
            last_completed_phase=self._last_completed_phase,
            has_unsaved_record=self._pending_record is not None,
            last_save_error=self._last_save_error,
            feedback=feedback,
        )

    # Commands

    def start_session(self, config: TimerConfiguration) -> None:
        """Begin the focus phase.

        Raises:
            SessionStateError: not in SETUP.
            ConfigurationError: the configuration cannot be run; stays in SETUP.
        """
        self._require("start session")

        # Own copy, so later edits to the caller's inputs cannot leak in
        snapshot = TimerConfiguration(
            total_session_minutes=config.total_session_minutes,
            focus_minutes=config.focus_minutes,
        )
        snapshot.validate()

        self._engine.start(snapshot.focus_seconds, EnginePhase.FOCUS)
        self._config = snapshot
        self._feedback = FeedbackRecord()
        self._stage = SessionStage.FOCUS

        logger.info(
            f"Session started: {snapshot.focus_minutes} min focus, "
            f"{snapshot.break_minutes} min break"
        )

    def pause_or_resume(self) -> bool:
        """Toggle pause on the running phase. Returns the new paused state."""
        self._require("pause or resume")
        return self._engine.toggle_pause()

    def submit_focus_feedback(self, mood: Mood, productivity: int) -> None:
        """Record mood and productivity, then start the break."""
        self._require("submit focus feedback")
        if not isinstance(mood, Mood):
            mood = Mood(*mood)
        validate_productivity(productivity)

        config = self._active_config("submit focus feedback")
        self._engine.start(config.break_seconds, EnginePhase.BREAK)

        self._feedback.mood = mood
        self._feedback.productivity_level = productivity
        self._stage = SessionStage.BREAK

        logger.info(f"Focus feedback recorded (productivity {productivity}); break started")

    async def submit_break_feedback(
        self, activity: str | None, satisfaction: int
    ) -> SaveResult:
        """Record break feedback, end the session and save it once.

        The session moves to SESSION_END before the save is attempted, so a
        failing store never leaves the user stuck. Failures are returned, not
        raised; the record stays in ``pending_record`` for ``retry_save()``.
        """
        self._require("submit break feedback")
        validate_satisfaction(satisfaction)
        config = self._active_config("submit break feedback")

        self._feedback.break_activity = (activity or "").strip() or None
        self._feedback.break_satisfaction = satisfaction
        self._stage = SessionStage.SESSION_END

        self._pending_record = SessionRecord.build(
            self._identity() or "", config, self._feedback
        )
        logger.info("Session complete, saving record")

        return await self._persist()

    async def retry_save(self) -> SaveResult:
        """User-initiated retry of a save that failed."""
        self._require("retry save")
        if self._pending_record is None:
            return SaveResult(ok=True, record=self._last_saved_record)
        return await self._persist()

    def start_new_session(self) -> None:
        """Leave SESSION_END and go back to setup."""
        self._require("start a new session")
        if self._pending_record is not None:
            logger.warning("Starting a new session; unsaved record discarded")
        self._clear()
        logger.info("Ready for a new session")

    def reset(self) -> None:
        """Abandon the current session. Nothing is saved."""
        if self._stage is SessionStage.SETUP:
            self._engine.reset()
            return
        abandoned = self._stage
        self._clear()
        logger.info(f"Session abandoned during {abandoned.value}")

    # Internals

    def _require(self, command: str) -> None:
        if self._stage not in _ALLOWED[command]:
            raise SessionStateError(command, self._stage.value)

    def _active_config(self, command: str) -> TimerConfiguration:
        if self._config is None:
            raise SessionStateError(command, self._stage.value)
        return self._config

    def _clear(self) -> None:
        self._engine.reset()
        self._stage = SessionStage.SETUP
        self._config = None
        self._feedback = FeedbackRecord()
        self._pending_record = None
        self._last_save_error = None

    def _on_phase_completed(self, phase: EnginePhase) -> None:
        self._completion_count += 1
        self._last_completed_phase = phase

        next_stage = _ON_COMPLETED.get((self._stage, phase))
        if next_stage is None:
            logger.warning(f"Ignoring {phase.value} completion in stage {self._stage.value}")
            return
        self._stage = next_stage

    async def _persist(self) -> SaveResult:
        if self._saving:
            return SaveResult(ok=False, record=self._pending_record, error="Save already in progress")

        record = self._pending_record
        if record is None:
            return SaveResult(ok=True, record=self._last_saved_record)
        self._saving = True
        try:
            if not record.user_id:
                user_id = self._identity()
                if not user_id:
                    raise MissingIdentityError()
                record.user_id = user_id

            saved = await self._store.save(record)
        except PersistenceError as e:
            logger.error(f"Failed to save session: {e}")
            return self._save_failed(record, str(e))
        except Exception as e:
            logger.exception("Unexpected error saving session")
            return self._save_failed(record, f"Unexpected error saving session: {e}")
        finally:
            self._saving = False

        # A reset or new session may have happened while the save was in flight
        if self._pending_record is record:
            self._pending_record = None
            self._last_save_error = None
        self._last_saved_record = saved
        logger.info(f"Session saved (id={saved.id})")
        return SaveResult(ok=True, record=saved)

    def _save_failed(self, record: SessionRecord, error: str) -> SaveResult:
        # A session cleared while the save was in flight keeps no error
        if self._pending_record is record:
            self._last_save_error = error
        return SaveResult(ok=False, record=record, error=error)
