"""Utility modules for ForgeBot."""

from forgebot.utils.locks import LockTimeoutError, SessionLock

__all__ = ["LockTimeoutError", "SessionLock"]
