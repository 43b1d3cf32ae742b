"""SQLAlchemy models for the ledger."""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, DateTime, Float, Index, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class WalletType(str, Enum):
    """How a custodial wallet came to exist."""

    GENERATED = "generated"
    IMPORTED = "imported"


class TransactionStatus(str, Enum):
    """Outcome of an on-chain submission."""

    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"


class JournalStatus(str, Enum):
    """Progress of an execution attempt."""

    PENDING = "pending"          # Claimed, nothing submitted yet
    SUBMITTED = "submitted"      # Submitted on-chain, record not yet written
    RECORDED = "recorded"        # Transaction record written
    FAILED = "failed"            # Aborted before or during submission


class User(Base):
    """User identity bound from the chat channel."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    fid: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    username: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class Wallet(Base):
    """Custodial wallet. One per user; replaced on create/import."""

    __tablename__ = "wallets"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    address: Mapped[str] = mapped_column(String(42), nullable=False)
    encrypted_private_key: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(20), default=WalletType.GENERATED.value)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class UserSettings(Base):
    """Persisted trading preferences."""

    __tablename__ = "user_settings"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    slippage: Mapped[float] = mapped_column(Float, default=1.0)
    gas_priority: Mapped[str] = mapped_column(String(10), default="medium")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class Transaction(Base):
    """On-chain transaction record. Immutable once written."""

    __tablename__ = "transactions"
    __table_args__ = (Index("ix_transactions_user_created", "user_id", "created_at"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    tx_hash: Mapped[str] = mapped_column(String(66), unique=True, nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    wallet_address: Mapped[str] = mapped_column(String(42), nullable=False)
    from_token: Mapped[str] = mapped_column(String(42), nullable=False)
    to_token: Mapped[str] = mapped_column(String(42), nullable=False)
    # Base units as decimal strings; values can exceed 64-bit range
    from_amount: Mapped[str] = mapped_column(String(80), nullable=False)
    to_amount: Mapped[str] = mapped_column(String(80), default="0")
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    gas_used: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class ExecutionJournal(Base):
    """Write-ahead entry for one confirmed operation.

    The unique operation_id makes execution at-most-once; rows left in
    SUBMITTED are replayed into `transactions` by reconciliation.
    """

    __tablename__ = "execution_journal"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    operation_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    session_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)  # buy, sell, withdraw
    status: Mapped[str] = mapped_column(String(20), default=JournalStatus.PENDING.value)
    tx_hash: Mapped[Optional[str]] = mapped_column(String(66), nullable=True)
    payload: Mapped[dict] = mapped_column(JSON, default=dict)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class SessionRecord(Base):
    """Serialized chat session for the database session backend."""

    __tablename__ = "sessions"

    sid: Mapped[str] = mapped_column(String(128), primary_key=True)
    data: Mapped[dict] = mapped_column(JSON, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
