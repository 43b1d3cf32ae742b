"""Ledger module for users, wallets, settings and transaction records."""

from forgebot.ledger.database import get_db, init_db
from forgebot.ledger.models import (
    ExecutionJournal,
    JournalStatus,
    SessionRecord,
    Transaction,
    TransactionStatus,
    User,
    UserSettings,
    Wallet,
    WalletType,
)
from forgebot.ledger.repository import LedgerRepository

__all__ = [
    # Models
    "User",
    "Wallet",
    "UserSettings",
    "Transaction",
    "ExecutionJournal",
    "SessionRecord",
    # Enums
    "WalletType",
    "TransactionStatus",
    "JournalStatus",
    # Database
    "get_db",
    "init_db",
    # Repository
    "LedgerRepository",
]
