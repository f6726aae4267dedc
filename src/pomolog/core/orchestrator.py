"""Process-wide owner of the timer engine, session coordinator and store."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from pomolog.core.config import Config, get_config
from pomolog.core.errors import ConfigurationError, MissingIdentityError
from pomolog.storage.database import Database
from pomolog.storage.session_store import LocalSessionStore, RemoteSessionStore, SessionStore
from pomolog.summarizers.session_stats import SessionStats, compute_session_stats
from pomolog.timer.coordinator import SessionCoordinator
from pomolog.timer.engine import TimerEngine
from pomolog.timer.models import SessionRecord, TimerConfiguration
from pomolog.timer.scheduler import Scheduler

logger = logging.getLogger(__name__)

# Keys in the database config table
_LAST_TOTAL_KEY = "setup.total_session_minutes"
_LAST_FOCUS_KEY = "setup.focus_minutes"


class Orchestrator:
    """Owns exactly one engine and one coordinator for the running process.

    Views (web routes, the terminal client) borrow these through
    ``get_orchestrator()`` instead of building their own, so attaching a
    second view never starts a second countdown.
    """

    def __init__(
        self,
        config: Config | None = None,
        scheduler: Scheduler | None = None,
        store: SessionStore | None = None,
        db: Database | None = None,
    ):
        self.config = config or get_config()
        self._running = False
        self._startup_time: datetime | None = None

        self.db = db
        self._store = store
        self._owns_db = db is None

        self.engine = TimerEngine(
            scheduler=scheduler,
            tick_interval=self.config.timer.tick_interval_seconds,
        )
        self.coordinator = SessionCoordinator(
            engine=self.engine,
            store=self,  # Resolved lazily so the store can be built in start()
            identity=self.current_user_id,
        )

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def uptime_seconds(self) -> float:
        if self._startup_time is None:
            return 0.0
        return (datetime.now(timezone.utc) - self._startup_time).total_seconds()

    @property
    def store(self) -> SessionStore:
        if self._store is None:
            raise RuntimeError("Orchestrator not started")
        return self._store

    def current_user_id(self) -> str | None:
        """Identity used to stamp saved sessions."""
        return (self.config.user_id or "").strip() or None

    async def start(self) -> None:
        """Connect storage and build the session store."""
        if self._running:
            logger.warning("Orchestrator already running")
            return

        if self.db is None:
            self.db = Database(self.config.db_path)
        await self.db.connect()

        if self._store is None:
            if self.config.store.backend == "remote":
                self._store = RemoteSessionStore(self.config.store)
            else:
                self._store = LocalSessionStore(self.db)

        self._running = True
        self._startup_time = datetime.now(timezone.utc)
        logger.info(f"pomolog started (store: {self.config.store.backend})")

    async def stop(self) -> None:
        """Abandon any session in progress and release resources."""
        if not self._running and self.db is None:
            return

        self.coordinator.reset()

        if isinstance(self._store, RemoteSessionStore):
            await self._store.close()

        if self.db is not None and self._owns_db:
            await self.db.close()
            self.db = None

        self._running = False
        logger.info("pomolog stopped")

    # SessionStore facade handed to the coordinator

    async def save(self, record: SessionRecord) -> SessionRecord:
        return await self.store.save(record)

    async def list_sessions(
        self,
        user_id: str,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[SessionRecord]:
        return await self.store.list_sessions(user_id, since=since, limit=limit)

    # Setup defaults

    async def last_setup(self) -> TimerConfiguration:
        """Minutes used for the last session, falling back to configured defaults."""
        total = self.config.timer.total_session_minutes
        focus = self.config.timer.focus_minutes

        if self.db is not None and self.db.is_connected:
            stored_total = await self.db.get_config(_LAST_TOTAL_KEY)
            stored_focus = await self.db.get_config(_LAST_FOCUS_KEY)
            try:
                if stored_total is not None and stored_focus is not None:
                    total, focus = int(stored_total), int(stored_focus)
            except ValueError:
                logger.warning("Ignoring corrupt saved setup values")

        return TimerConfiguration(total_session_minutes=total, focus_minutes=focus)

    async def start_session(self, config: TimerConfiguration) -> None:
        """Start a session and remember its minutes for next time."""
        self.coordinator.start_session(config)
        if self.db is not None and self.db.is_connected:
            await self.db.set_config(_LAST_TOTAL_KEY, config.total_session_minutes)
            await self.db.set_config(_LAST_FOCUS_KEY, config.focus_minutes)

    # History

    async def recent_sessions(self, limit: int = 20) -> list[SessionRecord]:
        user_id = self.current_user_id()
        if user_id is None:
            raise MissingIdentityError("No current user; cannot load sessions")
        return await self.list_sessions(user_id, limit=limit)

    async def session_stats(self, days: int = 7) -> SessionStats:
        if days < 1:
            raise ConfigurationError("days must be at least 1")
        user_id = self.current_user_id()
        if user_id is None:
            raise MissingIdentityError("No current user; cannot load sessions")

        now = datetime.now(timezone.utc)
        records = await self.list_sessions(user_id)
        return compute_session_stats(records, now=now, days=days)

    async def get_health(self) -> dict[str, Any]:
        """Get health status of all components."""
        health: dict[str, Any] = {
            "status": "running" if self._running else "stopped",
            "uptime_seconds": self.uptime_seconds,
            "stage": self.coordinator.stage.value,
            "store": self.config.store.backend,
            "signed_in": self.current_user_id() is not None,
        }

        if self.db is not None:
            try:
                health["database"] = {
                    "connected": self.db.is_connected,
                    "size_mb": round(await self.db.get_size_mb(), 3),
                }
            except Exception as e:
                health["database"] = {"connected": False, "error": str(e)}

        return health


# Global orchestrator instance
_orchestrator: Orchestrator | None = None


def get_orchestrator() -> Orchestrator:
    """Get the global orchestrator instance."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = Orchestrator()
    return _orchestrator


def set_orchestrator(orchestrator: Orchestrator | None) -> None:
    """Replace the global instance (used by the web app factory and tests)."""
    global _orchestrator
    _orchestrator = orchestrator
