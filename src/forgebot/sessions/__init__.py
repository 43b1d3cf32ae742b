"""Chat sessions and their stores."""

from forgebot.sessions.models import GasPriority, Session, TradeSettings
from forgebot.sessions.store import (
    DatabaseSessionStore,
    MemorySessionStore,
    SessionStore,
    create_session_store,
    purge_sessions_periodically,
)

__all__ = [
    "GasPriority",
    "Session",
    "TradeSettings",
    "SessionStore",
    "MemorySessionStore",
    "DatabaseSessionStore",
    "create_session_store",
    "purge_sessions_periodically",
]
