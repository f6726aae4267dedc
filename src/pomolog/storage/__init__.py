"""Storage layer for the local database and session stores."""

from pomolog.storage.database import Database
from pomolog.storage.session_store import LocalSessionStore, RemoteSessionStore, SessionStore

__all__ = ["Database", "LocalSessionStore", "RemoteSessionStore", "SessionStore"]
