"""Session store contract and adapters."""

import asyncio
import copy
import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from forgebot.config import Settings
from forgebot.ledger.database import session_scope
from forgebot.ledger.models import SessionRecord
from forgebot.sessions.models import Session

logger = logging.getLogger(__name__)


class SessionStore(ABC):
    """TTL-bound key/value store for chat sessions."""

    @abstractmethod
    async def get(self, session_id: str) -> Optional[Session]:
        """Load a session. Expired or unknown ids return None."""
        pass

    @abstractmethod
    async def set(self, session_id: str, session: Session, ttl: int) -> None:
        """Upsert a session; it expires `ttl` seconds from now."""
        pass

    @abstractmethod
    async def destroy(self, session_id: str) -> None:
        """Remove a session. Unknown ids are ignored."""
        pass


class MemorySessionStore(SessionStore):
    """In-process session store.

    Stores serialized copies so later mutations of a loaded Session never
    leak into the store without an explicit `set`.
    """

    def __init__(self):
        self._records: dict[str, tuple[float, dict]] = {}
        self._lock = asyncio.Lock()

    async def get(self, session_id: str) -> Optional[Session]:
        async with self._lock:
            entry = self._records.get(session_id)
            if entry is None:
                return None

            expires_at, data = entry
            if time.time() >= expires_at:
                del self._records[session_id]
                return None

            return Session.from_record(copy.deepcopy(data))

    async def set(self, session_id: str, session: Session, ttl: int) -> None:
        async with self._lock:
            self._records[session_id] = (time.time() + ttl, session.to_record())

    async def destroy(self, session_id: str) -> None:
        async with self._lock:
            self._records.pop(session_id, None)

    async def purge_expired(self) -> int:
        """Drop expired entries and return how many were removed."""
        async with self._lock:
            now = time.time()
            expired = [sid for sid, (exp, _) in self._records.items() if now >= exp]
            for sid in expired:
                del self._records[sid]
            return len(expired)

    def __len__(self) -> int:
        return len(self._records)


class DatabaseSessionStore(SessionStore):
    """Session store backed by the `sessions` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @staticmethod
    def _now() -> datetime:
        # SQLite drops tzinfo on read, so compare in naive UTC throughout
        return datetime.now(timezone.utc).replace(tzinfo=None)

    async def get(self, session_id: str) -> Optional[Session]:
        async with session_scope(self._session_factory) as db:
            stmt = select(SessionRecord).where(SessionRecord.sid == session_id)
            record = (await db.execute(stmt)).scalar_one_or_none()
            if record is None:
                return None

            expires_at = record.expires_at
            if expires_at.tzinfo is not None:
                expires_at = expires_at.astimezone(timezone.utc).replace(tzinfo=None)
            if expires_at <= self._now():
                await db.delete(record)
                return None

            return Session.from_record(record.data)

    async def set(self, session_id: str, session: Session, ttl: int) -> None:
        expires_at = self._now() + timedelta(seconds=ttl)
        async with session_scope(self._session_factory) as db:
            record = await db.get(SessionRecord, session_id)
            if record is None:
                db.add(SessionRecord(sid=session_id, data=session.to_record(), expires_at=expires_at))
            else:
                record.data = session.to_record()
                record.expires_at = expires_at

    async def destroy(self, session_id: str) -> None:
        async with session_scope(self._session_factory) as db:
            await db.execute(delete(SessionRecord).where(SessionRecord.sid == session_id))

    async def purge_expired(self) -> int:
        """Delete expired rows and return how many were removed."""
        async with session_scope(self._session_factory) as db:
            result = await db.execute(
                delete(SessionRecord).where(SessionRecord.expires_at <= self._now())
            )
            return result.rowcount or 0


def create_session_store(
    settings: Settings,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> SessionStore:
    """Create the session store selected by configuration."""
    backend = settings.session_backend.lower()
    if backend == "database":
        if session_factory is None:
            raise ValueError("Database session backend requires a session factory")
        logger.info("Using database session store")
        return DatabaseSessionStore(session_factory)
    if backend == "memory":
        logger.info("Using in-memory session store")
        return MemorySessionStore()
    raise ValueError(f"Unknown session backend: {settings.session_backend}")


async def purge_sessions_periodically(store: SessionStore, interval: float) -> None:
    """Sweep expired sessions every `interval` seconds until cancelled."""
    while True:
        try:
            removed = await store.purge_expired()
            if removed:
                logger.info(f"Purged {removed} expired sessions")
        except Exception as e:
            logger.error(f"Session purge failed: {e}")
        await asyncio.sleep(interval)
