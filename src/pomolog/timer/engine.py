"""Countdown engine: the single owner of the ticking phase timer."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from pomolog.core.errors import ConfigurationError
from pomolog.timer.models import EnginePhase, TimerSnapshot
from pomolog.timer.scheduler import AsyncioScheduler, Scheduler, TickHandle

logger = logging.getLogger(__name__)

PhaseCompletedListener = Callable[[EnginePhase], None]


@dataclass
class TimerRun:
    """Live state of the countdown."""
    phase: EnginePhase = EnginePhase.SETUP
    time_left_seconds: int = 0
    total_phase_seconds: int = 0
    is_running: bool = False
    is_paused: bool = False


class TimerEngine:
    """Countdown timer with pause/resume toggle and a phase-completed signal.

    The engine owns the only ticker for its run. Views read ``snapshot()`` and
    subscribe to completion; they never drive the countdown themselves.

    Usage:
        engine = TimerEngine()
        engine.subscribe(lambda phase: print(f"{phase.value} complete!"))

        engine.start(25 * 60, EnginePhase.FOCUS)
        engine.toggle_pause()  # pause
        engine.toggle_pause()  # resume
        engine.reset()
    """

    def __init__(self, scheduler: Scheduler | None = None, tick_interval: float = 1.0):
        self._scheduler = scheduler or AsyncioScheduler()
        self._tick_interval = tick_interval
        self._run = TimerRun()
        self._ticker: TickHandle | None = None
        # Bumped every time the ticker is replaced or cancelled; stale ticks are dropped
        self._generation = 0
        self._listeners: list[PhaseCompletedListener] = []

    # Observation

    def snapshot(self) -> TimerSnapshot:
        """Get current timer state (read-only copy)."""
        return TimerSnapshot(
            phase=self._run.phase,
            time_left_seconds=self._run.time_left_seconds,
            total_phase_seconds=self._run.total_phase_seconds,
            is_running=self._run.is_running,
            is_paused=self._run.is_paused,
        )

    @property
    def phase(self) -> EnginePhase:
        return self._run.phase

    @property
    def has_ticker(self) -> bool:
        return self._ticker is not None

    def subscribe(self, listener: PhaseCompletedListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: PhaseCompletedListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # Commands

    def start(self, duration_seconds: int, phase: EnginePhase) -> None:
        """Start counting down a new phase.

        Raises:
            ConfigurationError: duration is not a positive whole number of
                seconds, or phase is SETUP. The current run is left as is.
        """
        if isinstance(duration_seconds, bool) or not isinstance(duration_seconds, int):
            raise ConfigurationError("duration must be a whole number of seconds")
        if duration_seconds <= 0:
            raise ConfigurationError(f"duration must be positive, got {duration_seconds}s")
        if phase is EnginePhase.SETUP:
            raise ConfigurationError("cannot count down the setup phase")

        self._cancel_ticker()
        self._run = TimerRun(
            phase=phase,
            time_left_seconds=duration_seconds,
            total_phase_seconds=duration_seconds,
            is_running=True,
            is_paused=False,
        )
        self._install_ticker()

        logger.info(f"Timer started: {phase.value} for {duration_seconds}s")

    def toggle_pause(self) -> bool:
        """Pause a running countdown or resume a paused one.

        Returns the new paused state. Does nothing when no countdown is running.
        """
        if not self._run.is_running:
            return False

        if self._run.is_paused:
            self._run.is_paused = False
            self._install_ticker()
            logger.info(f"Timer resumed at {self.snapshot().time_left_display}")
        else:
            self._cancel_ticker()
            self._run.is_paused = True
            logger.info(f"Timer paused at {self.snapshot().time_left_display}")

        return self._run.is_paused

    def reset(self) -> None:
        """Discard the current run and return to setup."""
        self._cancel_ticker()
        self._run = TimerRun()
        logger.info("Timer reset")

    def tick(self) -> None:
        """Apply one elapsed second to the running countdown."""
        run = self._run
        if not run.is_running or run.is_paused:
            return

        run.time_left_seconds -= 1
        if run.time_left_seconds > 0:
            return

        run.time_left_seconds = 0
        run.is_running = False
        self._cancel_ticker()

        logger.info(f"Phase complete: {run.phase.value}")
        self._emit_completed(run.phase)

    # Internals

    def _install_ticker(self) -> None:
        self._cancel_ticker()
        generation = self._generation

        def on_tick() -> None:
            if generation != self._generation:
                return
            self.tick()

        self._ticker = self._scheduler.call_every(self._tick_interval, on_tick)

    def _cancel_ticker(self) -> None:
        self._generation += 1
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    def _emit_completed(self, phase: EnginePhase) -> None:
        for listener in list(self._listeners):
            try:
                listener(phase)
            except Exception as e:
                logger.error(f"Error in phase-completed listener: {e}")
