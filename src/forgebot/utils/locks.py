"""Per-session leases.

Serializes requests that share a session id so a double-submitted
confirmation cannot execute twice within this process. Registry entries
live only while a request holds or waits for them.
"""

import asyncio
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class _LeaseEntry:
    """A session's lock plus the number of requests holding or awaiting it."""

    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = asyncio.Lock()
        self.users = 0


# Global lock registry: session_id -> entry
_session_locks: dict[str, _LeaseEntry] = {}
_registry_lock = asyncio.Lock()


async def _checkout(session_id: str) -> asyncio.Lock:
    """Get or create the lock for a session id and count the caller as a user."""
    async with _registry_lock:
        entry = _session_locks.get(session_id)
        if entry is None:
            entry = _session_locks[session_id] = _LeaseEntry()
        entry.users += 1
        return entry.lock


def _checkin(session_id: str) -> None:
    """Drop the caller's claim; the last one out removes the entry."""
    entry = _session_locks.get(session_id)
    if entry is None:
        return
    entry.users -= 1
    if entry.users <= 0:
        del _session_locks[session_id]


class LockTimeoutError(Exception):
    """Raised when a lease cannot be acquired within the timeout period."""

    pass


class SessionLock:
    """Async context manager holding the lease for one session.

    A second request for the same session waits up to `timeout` seconds
    and then fails with LockTimeoutError.

    Example:
        async with SessionLock(session_id, timeout=10.0, operation="callback"):
            session = await store.get(session_id)
            ...
            await store.set(session_id, session, ttl)
    """

    def __init__(
        self,
        session_id: str,
        timeout: Optional[float] = 10.0,
        operation: str = "request",
    ):
        """Initialize the lease.

        Args:
            session_id: Opaque session identifier
            timeout: Maximum time to wait (None = wait forever)
            operation: Description of the request for logging
        """
        self.session_id = session_id
        self.timeout = timeout
        self.operation = operation
        self._lock: Optional[asyncio.Lock] = None
        self._acquired = False

    async def __aenter__(self) -> "SessionLock":
        self._lock = await _checkout(self.session_id)

        try:
            if self.timeout:
                await asyncio.wait_for(self._lock.acquire(), timeout=self.timeout)
            else:
                await self._lock.acquire()
            self._acquired = True
        except asyncio.TimeoutError:
            logger.warning(
                f"Lease timeout for session {self._short_id} after {self.timeout}s: {self.operation}"
            )
            raise LockTimeoutError(
                f"Could not acquire lease for session {self._short_id} within {self.timeout}s"
            )
        finally:
            if not self._acquired:
                _checkin(self.session_id)

        logger.debug(f"Lease acquired for session {self._short_id}: {self.operation}")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._acquired and self._lock:
            self._lock.release()
            self._acquired = False
            _checkin(self.session_id)
            logger.debug(f"Lease released for session {self._short_id}: {self.operation}")
        return False

    @property
    def _short_id(self) -> str:
        # Session ids are bearer tokens; never log them whole
        return f"{self.session_id[:6]}…"


def active_session_locks() -> int:
    """Number of sessions with a request holding or awaiting a lease."""
    return len(_session_locks)


def clear_session_locks() -> None:
    """Clear all session locks (useful for testing)."""
    _session_locks.clear()
