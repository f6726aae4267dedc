"""Session stores: where completed session records are saved."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Protocol

import aiohttp

from pomolog.core.config import StoreConfig
from pomolog.core.errors import PersistenceError
from pomolog.storage.database import Database
from pomolog.timer.models import SessionRecord

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id, user_id, session_minutes, focus_minutes, prod_level, mood_x, mood_y, "
    "break_activity, break_satisfaction, created_at"
)

_INSERT_SESSION = """
INSERT INTO sessions (
    user_id, session_minutes, focus_minutes, prod_level, mood_x, mood_y,
    break_activity, break_satisfaction, created_at
) VALUES (
    :user_id, :session_minutes, :focus_minutes, :prod_level, :mood_x, :mood_y,
    :break_activity, :break_satisfaction, :created_at
)
"""


class SessionStore(Protocol):
    """Persistence collaborator for finished sessions."""

    async def save(self, record: SessionRecord) -> SessionRecord:
        """Store the record and return it with its assigned id.

        Raises PersistenceError on failure.
        """
        ...

    async def list_sessions(
        self,
        user_id: str,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[SessionRecord]:
        """Sessions for a user, newest first."""
        ...


class LocalSessionStore:
    """Sessions kept in the local SQLite database."""

    def __init__(self, db: Database):
        self.db = db

    async def save(self, record: SessionRecord) -> SessionRecord:
        try:
            row_id = await self.db.execute(_INSERT_SESSION, record.to_db_dict())
        except Exception as e:
            raise PersistenceError(f"Could not write session to database: {e}") from e

        record.id = row_id
        logger.debug(f"Session {row_id} written for user {record.user_id}")
        return record

    async def list_sessions(
        self,
        user_id: str,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[SessionRecord]:
        query = f"SELECT {_COLUMNS} FROM sessions WHERE user_id = ?"
        params: list[Any] = [user_id]

        if since is not None:
            query += " AND created_at >= ?"
            params.append(since.isoformat())

        query += " ORDER BY created_at DESC, id DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        rows = await self.db.fetch_all(query, tuple(params))
        return [SessionRecord.from_db_row(row) for row in rows]


class RemoteSessionStore:
    """Sessions kept in a hosted REST table (PostgREST-style endpoint).

    Rows are written with ``POST {url}/rest/v1/{table}`` and read back with
    ``GET`` filters, the way the web front end talks to its hosted backend.
    """

    def __init__(self, config: StoreConfig, session: aiohttp.ClientSession | None = None):
        if not config.remote_url:
            raise PersistenceError("Remote store selected but no remote_url is configured")

        self.config = config
        self.endpoint = f"{config.remote_url.rstrip('/')}/rest/v1/{config.remote_table}"
        self._session = session
        self._owns_session = session is None

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.config.remote_api_key:
            headers["apikey"] = self.config.remote_api_key
        token = self.config.remote_access_token or self.config.remote_api_key
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.timeout_seconds)
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def save(self, record: SessionRecord) -> SessionRecord:
        session = await self._get_session()
        headers = self._headers() | {"Prefer": "return=representation"}

        try:
            async with session.post(
                self.endpoint, json=record.to_db_dict(), headers=headers
            ) as resp:
                if resp.status not in (200, 201):
                    body = await resp.text()
                    raise PersistenceError(
                        f"Session save rejected by backend ({resp.status}): {body[:200]}"
                    )
                data = await resp.json()
        except aiohttp.ClientError as e:
            raise PersistenceError(f"Network error saving session: {e}") from e

        rows = data if isinstance(data, list) else [data]
        if rows and isinstance(rows[0], dict):
            record.id = rows[0].get("id", record.id)
        logger.debug(f"Session {record.id} saved to {self.endpoint}")
        return record

    async def list_sessions(
        self,
        user_id: str,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[SessionRecord]:
        session = await self._get_session()
        params: list[tuple[str, str]] = [
            ("select", "*"),
            ("user_id", f"eq.{user_id}"),
            ("order", "created_at.desc"),
        ]
        if since is not None:
            params.append(("created_at", f"gte.{since.isoformat()}"))
        if limit is not None:
            params.append(("limit", str(limit)))

        try:
            async with session.get(self.endpoint, params=params, headers=self._headers()) as resp:
                if resp.status != 200:
                    body = await resp.text()
                    raise PersistenceError(
                        f"Could not load sessions ({resp.status}): {body[:200]}"
                    )
                rows = await resp.json()
        except aiohttp.ClientError as e:
            raise PersistenceError(f"Network error loading sessions: {e}") from e

        return [SessionRecord.from_db_row(row) for row in rows]
