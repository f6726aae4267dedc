"""Tests for the session coordinator state machine."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from pomolog.core.errors import (
    ConfigurationError,
    FeedbackValidationError,
    PersistenceError,
    SessionStateError,
)
from pomolog.timer.coordinator import SessionCoordinator
from pomolog.timer.models import EnginePhase, Mood, SessionStage, TimerConfiguration


def _run_focus(coordinator, scheduler, total=30, focus=25):
    coordinator.start_session(TimerConfiguration(total, focus))
    scheduler.advance(focus * 60)


def _run_to_break_feedback(coordinator, scheduler, total=30, focus=25, productivity=8):
    _run_focus(coordinator, scheduler, total, focus)
    coordinator.submit_focus_feedback(Mood(0.6, 0.4), productivity)
    scheduler.advance((total - focus) * 60)


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------


async def test_full_session_saves_once(coordinator, scheduler, store):
    coordinator.start_session(TimerConfiguration(30, 25))
    assert coordinator.stage is SessionStage.FOCUS
    assert coordinator.snapshot().timer.total_phase_seconds == 1500

    scheduler.advance(1500)
    assert coordinator.stage is SessionStage.FOCUS_FEEDBACK

    coordinator.submit_focus_feedback(Mood(0.6, 0.4), 8)
    snap = coordinator.snapshot()
    assert snap.stage is SessionStage.BREAK
    assert snap.timer.phase is EnginePhase.BREAK
    assert snap.timer.total_phase_seconds == 300

    scheduler.advance(300)
    assert coordinator.stage is SessionStage.BREAK_FEEDBACK

    result = await coordinator.submit_break_feedback("walk", -2)

    assert result.ok is True
    assert coordinator.stage is SessionStage.SESSION_END
    assert len(store.saved) == 1
    saved = store.saved[0]
    assert saved.user_id == "user-1"
    assert saved.session_minutes == 30
    assert saved.focus_minutes == 25
    assert saved.prod_level == 8
    assert (saved.mood_x, saved.mood_y) == (0.6, 0.4)
    assert saved.break_activity == "walk"
    assert saved.break_satisfaction == -2
    assert saved.created_at.tzinfo is not None
    assert coordinator.pending_record is None
    assert coordinator.last_saved_record is saved


async def test_start_new_session_returns_to_setup(coordinator, scheduler):
    _run_to_break_feedback(coordinator, scheduler)
    await coordinator.submit_break_feedback(None, 0)

    coordinator.start_new_session()

    snap = coordinator.snapshot()
    assert snap.stage is SessionStage.SETUP
    assert snap.configuration is None
    assert snap.feedback == {}
    assert snap.timer.phase is EnginePhase.SETUP


async def test_blank_activity_is_stored_as_none(coordinator, scheduler, store):
    _run_to_break_feedback(coordinator, scheduler)

    await coordinator.submit_break_feedback("   ", 3)

    assert store.saved[0].break_activity is None


def test_mood_may_be_given_as_pair(coordinator, scheduler):
    _run_focus(coordinator, scheduler)

    coordinator.submit_focus_feedback((0.2, 0.9), 5)

    feedback = coordinator.snapshot().feedback
    assert feedback["mood_x"] == 0.2
    assert feedback["mood_y"] == 0.9
    assert feedback["mood_color"].startswith("rgb(")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def test_break_uses_configuration_captured_at_start(coordinator, scheduler):
    form = SimpleNamespace(total_session_minutes=45, focus_minutes=30)
    coordinator.start_session(form)

    # The setup form is edited while focus is running
    form.focus_minutes = 10
    form.total_session_minutes = 60
    scheduler.advance(30 * 60)
    coordinator.submit_focus_feedback(Mood(0.5, 0.5), 6)

    assert coordinator.snapshot().timer.total_phase_seconds == 900
    assert coordinator.configuration.total_session_minutes == 45


@pytest.mark.parametrize(
    "total,focus",
    [(25, 25), (30, 0), (0, 0), (20, 25), (-5, 1)],
)
def test_unrunnable_configuration_stays_in_setup(coordinator, scheduler, total, focus):
    with pytest.raises(ConfigurationError):
        coordinator.start_session(TimerConfiguration(total, focus))

    assert coordinator.stage is SessionStage.SETUP
    assert scheduler.handles == []


# ---------------------------------------------------------------------------
# Stage guards
# ---------------------------------------------------------------------------


def test_commands_rejected_in_wrong_stage(coordinator, scheduler):
    with pytest.raises(SessionStateError):
        coordinator.pause_or_resume()
    with pytest.raises(SessionStateError):
        coordinator.submit_focus_feedback(Mood(0.5, 0.5), 5)

    coordinator.start_session(TimerConfiguration(30, 25))

    with pytest.raises(SessionStateError):
        coordinator.start_session(TimerConfiguration(30, 25))
    with pytest.raises(SessionStateError):
        coordinator.submit_focus_feedback(Mood(0.5, 0.5), 5)
    with pytest.raises(SessionStateError):
        coordinator.start_new_session()


async def test_break_feedback_rejected_during_focus(coordinator, store):
    coordinator.start_session(TimerConfiguration(30, 25))

    with pytest.raises(SessionStateError) as exc:
        await coordinator.submit_break_feedback("walk", 0)

    assert exc.value.stage == "focus"
    assert store.save_calls == 0


def test_invalid_productivity_keeps_feedback_stage(coordinator, scheduler):
    _run_focus(coordinator, scheduler)

    with pytest.raises(FeedbackValidationError):
        coordinator.submit_focus_feedback(Mood(0.5, 0.5), 11)

    assert coordinator.stage is SessionStage.FOCUS_FEEDBACK
    assert coordinator.engine.snapshot().is_running is False


async def test_invalid_satisfaction_keeps_feedback_stage(coordinator, scheduler, store):
    _run_to_break_feedback(coordinator, scheduler)

    with pytest.raises(FeedbackValidationError):
        await coordinator.submit_break_feedback("walk", 11)

    assert coordinator.stage is SessionStage.BREAK_FEEDBACK
    assert store.save_calls == 0


# ---------------------------------------------------------------------------
# Pause and reset
# ---------------------------------------------------------------------------


def test_pause_or_resume_during_break(coordinator, scheduler):
    _run_focus(coordinator, scheduler)
    coordinator.submit_focus_feedback(Mood(0.5, 0.5), 5)
    scheduler.advance(60)

    assert coordinator.pause_or_resume() is True
    scheduler.advance(60)
    assert coordinator.snapshot().timer.time_left_seconds == 240

    assert coordinator.pause_or_resume() is False
    scheduler.advance(60)
    assert coordinator.snapshot().timer.time_left_seconds == 180


@pytest.mark.parametrize(
    "ticks,stage",
    [(0, SessionStage.FOCUS), (1500, SessionStage.FOCUS_FEEDBACK)],
)
async def test_reset_abandons_without_saving(coordinator, scheduler, store, ticks, stage):
    coordinator.start_session(TimerConfiguration(30, 25))
    scheduler.advance(ticks)
    assert coordinator.stage is stage

    coordinator.reset()

    snap = coordinator.snapshot()
    assert snap.stage is SessionStage.SETUP
    assert snap.timer.phase is EnginePhase.SETUP
    assert snap.timer.time_left_seconds == 0
    assert scheduler.active_handles == []
    assert store.save_calls == 0


def test_reset_during_break_then_restart(coordinator, scheduler):
    _run_focus(coordinator, scheduler)
    coordinator.submit_focus_feedback(Mood(0.5, 0.5), 5)
    scheduler.advance(10)

    coordinator.reset()
    coordinator.start_session(TimerConfiguration(20, 15))

    assert coordinator.snapshot().timer.total_phase_seconds == 900
    assert len(scheduler.active_handles) == 1


def test_reset_in_setup_is_noop(coordinator, scheduler):
    coordinator.reset()

    assert coordinator.stage is SessionStage.SETUP
    assert scheduler.handles == []


# ---------------------------------------------------------------------------
# Persistence failures
# ---------------------------------------------------------------------------


async def test_save_failure_still_ends_session(coordinator, scheduler, failing_store):
    _run_to_break_feedback(coordinator, scheduler)

    result = await coordinator.submit_break_feedback("stretch", 1)

    assert result.ok is False
    assert "backend unavailable" in result.error
    assert coordinator.stage is SessionStage.SESSION_END
    snap = coordinator.snapshot()
    assert snap.has_unsaved_record is True
    assert snap.last_save_error == "backend unavailable"
    assert coordinator.pending_record is not None


async def test_retry_save_after_failure(coordinator, scheduler, failing_store):
    _run_to_break_feedback(coordinator, scheduler)
    await coordinator.submit_break_feedback("stretch", 1)

    failing_store.fail_with = None
    result = await coordinator.retry_save()

    assert result.ok is True
    assert len(failing_store.saved) == 1
    assert coordinator.snapshot().has_unsaved_record is False

    # Nothing left to save; no duplicate write
    again = await coordinator.retry_save()
    assert again.ok is True
    assert len(failing_store.saved) == 1


async def test_unexpected_store_error_is_reported(coordinator, scheduler, store):
    store.fail_with = RuntimeError("disk on fire")
    _run_to_break_feedback(coordinator, scheduler)

    result = await coordinator.submit_break_feedback(None, 0)

    assert result.ok is False
    assert "disk on fire" in result.error
    assert coordinator.stage is SessionStage.SESSION_END


async def test_missing_identity_is_a_save_failure(coordinator, scheduler, store, identity):
    identity["user_id"] = None
    _run_to_break_feedback(coordinator, scheduler)

    result = await coordinator.submit_break_feedback("walk", 0)

    assert result.ok is False
    assert "No current user" in result.error
    assert store.save_calls == 0
    assert coordinator.stage is SessionStage.SESSION_END

    identity["user_id"] = "user-2"
    retried = await coordinator.retry_save()

    assert retried.ok is True
    assert store.saved[0].user_id == "user-2"


async def test_retry_save_rejected_outside_session_end(coordinator):
    with pytest.raises(SessionStateError):
        await coordinator.retry_save()


async def test_persistence_error_type_is_not_raised(coordinator, scheduler, store):
    store.fail_with = PersistenceError("timeout")
    _run_to_break_feedback(coordinator, scheduler)

    result = await coordinator.submit_break_feedback("walk", 0)

    assert result.to_dict()["saved"] is False
    assert result.to_dict()["record"]["prod_level"] == 8


# ---------------------------------------------------------------------------
# Multiple views
# ---------------------------------------------------------------------------


def test_two_views_share_one_ticker(coordinator, scheduler):
    seen_a: list[tuple[EnginePhase, SessionStage]] = []
    seen_b: list[tuple[EnginePhase, SessionStage]] = []
    coordinator.subscribe(lambda phase: seen_a.append((phase, coordinator.stage)))
    coordinator.subscribe(lambda phase: seen_b.append((phase, coordinator.stage)))

    coordinator.start_session(TimerConfiguration(30, 25))
    for _ in range(1500):
        assert len(scheduler.active_handles) <= 1
        scheduler.advance(1)

    expected = [(EnginePhase.FOCUS, SessionStage.FOCUS_FEEDBACK)]
    assert seen_a == expected
    assert seen_b == expected
    assert coordinator.completion_count == 1


def test_snapshot_reports_last_completed_phase(coordinator, scheduler):
    _run_focus(coordinator, scheduler)

    snap = coordinator.snapshot().to_dict()

    assert snap["stage"] == "focus_feedback"
    assert snap["last_completed_phase"] == "focus"
    assert snap["completion_count"] == 1
    assert snap["configuration"] == {
        "total_session_minutes": 30,
        "focus_minutes": 25,
        "break_minutes": 5,
    }


# ---------------------------------------------------------------------------
# Saves still in flight when the session is cleared
# ---------------------------------------------------------------------------


class _GatedStore:
    """Store whose save waits until the test opens the gate, then fails."""

    def __init__(self, error: Exception):
        self.error = error
        self.gate = asyncio.Event()
        self.entered = asyncio.Event()

    async def save(self, record):
        self.entered.set()
        await self.gate.wait()
        raise self.error

    async def list_sessions(self, user_id, since=None, limit=None):
        return []


@pytest.mark.parametrize(
    "error",
    [PersistenceError("backend unavailable"), RuntimeError("disk on fire")],
)
@pytest.mark.parametrize("clear", ["start_new_session", "reset"])
async def test_late_save_failure_does_not_leak_into_next_session(engine, scheduler, error, clear):
    store = _GatedStore(error)
    coordinator = SessionCoordinator(engine, store, identity=lambda: "user-1")
    _run_to_break_feedback(coordinator, scheduler)

    save = asyncio.create_task(coordinator.submit_break_feedback("walk", 0))
    await store.entered.wait()
    getattr(coordinator, clear)()
    store.gate.set()
    result = await save

    assert result.ok is False
    snap = coordinator.snapshot()
    assert snap.stage is SessionStage.SETUP
    assert snap.has_unsaved_record is False
    assert snap.last_save_error is None


def test_feedback_without_configuration_is_rejected(coordinator):
    # Stage and configuration out of step
    coordinator._stage = SessionStage.FOCUS_FEEDBACK

    with pytest.raises(SessionStateError):
        coordinator.submit_focus_feedback(Mood(0.5, 0.5), 5)
