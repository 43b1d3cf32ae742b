"""Repository for ledger operations."""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from forgebot.errors import DuplicateOperationError
from forgebot.ledger.models import (
    ExecutionJournal,
    JournalStatus,
    Transaction,
    User,
    UserSettings,
    Wallet,
)

logger = logging.getLogger(__name__)


class LedgerRepository:
    """Repository for all ledger-related database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # User operations
    async def get_user(self, user_id: str) -> Optional[User]:
        """Get user by external identity."""
        stmt = select(User).where(User.user_id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create_user(
        self,
        user_id: str,
        fid: Optional[str] = None,
        username: Optional[str] = None,
        display_name: Optional[str] = None,
    ) -> User:
        """Create a new user."""
        user = User(user_id=user_id, fid=fid, username=username, display_name=display_name)
        self.session.add(user)
        await self.session.flush()
        return user

    async def get_or_create_user(
        self,
        user_id: str,
        fid: Optional[str] = None,
        username: Optional[str] = None,
        display_name: Optional[str] = None,
    ) -> User:
        """Get existing user or create a new one."""
        user = await self.get_user(user_id)
        if user is None:
            user = await self.create_user(user_id, fid, username, display_name)
        return user

    # Wallet operations
    async def get_wallet_by_user_id(self, user_id: str) -> Optional[Wallet]:
        """Get the wallet owned by a user."""
        stmt = select(Wallet).where(Wallet.user_id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def save_wallet(
        self,
        user_id: str,
        address: str,
        encrypted_private_key: str,
        wallet_type: str,
    ) -> Wallet:
        """Store a wallet, replacing any existing one for the user."""
        wallet = await self.get_wallet_by_user_id(user_id)
        if wallet is None:
            wallet = Wallet(user_id=user_id)
            self.session.add(wallet)

        wallet.address = address
        wallet.encrypted_private_key = encrypted_private_key
        wallet.type = wallet_type
        wallet.created_at = datetime.now(timezone.utc)
        await self.session.flush()
        return wallet

    # Settings operations
    async def get_user_settings(self, user_id: str) -> Optional[UserSettings]:
        """Get persisted settings for a user."""
        stmt = select(UserSettings).where(UserSettings.user_id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def save_user_settings(
        self,
        user_id: str,
        slippage: float,
        gas_priority: str,
    ) -> UserSettings:
        """Upsert settings for a user."""
        settings = await self.get_user_settings(user_id)
        if settings is None:
            settings = UserSettings(user_id=user_id)
            self.session.add(settings)

        settings.slippage = slippage
        settings.gas_priority = gas_priority
        await self.session.flush()
        return settings

    # Transaction operations
    async def get_transaction(self, tx_hash: str) -> Optional[Transaction]:
        """Get transaction by hash."""
        stmt = select(Transaction).where(Transaction.tx_hash == tx_hash)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def save_transaction(
        self,
        tx_hash: str,
        user_id: str,
        wallet_address: str,
        from_token: str,
        to_token: str,
        from_amount: str,
        status: str,
        to_amount: str = "0",
        gas_used: Optional[str] = None,
    ) -> Transaction:
        """Record a transaction.

        Records are keyed by hash and never modified; writing an existing hash
        returns the stored record unchanged.
        """
        existing = await self.get_transaction(tx_hash)
        if existing is not None:
            logger.info(f"Transaction {tx_hash} already recorded")
            return existing

        tx = Transaction(
            tx_hash=tx_hash,
            user_id=user_id,
            wallet_address=wallet_address,
            from_token=from_token,
            to_token=to_token,
            from_amount=from_amount,
            to_amount=to_amount,
            status=status,
            gas_used=gas_used,
        )
        self.session.add(tx)
        try:
            await self.session.flush()
        except IntegrityError:
            # Lost a race with a concurrent writer for the same hash
            await self.session.rollback()
            existing = await self.get_transaction(tx_hash)
            if existing is None:
                raise
            return existing
        return tx

    async def get_transactions(
        self,
        user_id: str,
        since: Optional[datetime] = None,
        limit: int = 20,
    ) -> list[Transaction]:
        """Get a user's transactions, newest first."""
        stmt = select(Transaction).where(Transaction.user_id == user_id)
        if since is not None:
            stmt = stmt.where(Transaction.created_at >= since)
        stmt = stmt.order_by(Transaction.created_at.desc(), Transaction.id.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_unique_tokens_by_user(self, user_id: str) -> list[str]:
        """Get every token address that appears in a user's transactions."""
        stmt = select(Transaction.from_token, Transaction.to_token).where(
            Transaction.user_id == user_id
        )
        result = await self.session.execute(stmt)

        seen: dict[str, str] = {}
        for from_token, to_token in result.all():
            for token in (from_token, to_token):
                seen.setdefault(token.lower(), token)
        return list(seen.values())

    # Execution journal operations
    async def get_operation(self, operation_id: str) -> Optional[ExecutionJournal]:
        """Get a journal entry by operation id."""
        stmt = select(ExecutionJournal).where(ExecutionJournal.operation_id == operation_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def begin_operation(
        self,
        operation_id: str,
        user_id: str,
        kind: str,
        payload: dict,
        session_id: Optional[str] = None,
    ) -> ExecutionJournal:
        """Claim an operation id before anything is submitted.

        Raises:
            DuplicateOperationError: if the operation was already claimed
        """
        if await self.get_operation(operation_id) is not None:
            raise DuplicateOperationError()

        entry = ExecutionJournal(
            operation_id=operation_id,
            user_id=user_id,
            session_id=session_id,
            kind=kind,
            status=JournalStatus.PENDING.value,
            payload=payload,
        )
        self.session.add(entry)
        try:
            await self.session.flush()
        except IntegrityError:
            await self.session.rollback()
            raise DuplicateOperationError()
        return entry

    async def mark_operation_submitted(
        self,
        operation_id: str,
        tx_hash: str,
        updates: Optional[dict] = None,
    ) -> ExecutionJournal:
        """Record the hash returned by the chain for an operation."""
        entry = await self._require_operation(operation_id)
        entry.status = JournalStatus.SUBMITTED.value
        entry.tx_hash = tx_hash
        if updates:
            entry.payload = {**(entry.payload or {}), **updates}
        await self.session.flush()
        return entry

    async def mark_operation_recorded(self, operation_id: str) -> ExecutionJournal:
        """Mark an operation whose transaction record has been written."""
        entry = await self._require_operation(operation_id)
        entry.status = JournalStatus.RECORDED.value
        await self.session.flush()
        return entry

    async def mark_operation_failed(self, operation_id: str, error: str) -> ExecutionJournal:
        """Mark an operation that never reached the chain."""
        entry = await self._require_operation(operation_id)
        entry.status = JournalStatus.FAILED.value
        entry.error = error[:1000]
        await self.session.flush()
        return entry

    async def get_unrecorded_operations(self) -> list[ExecutionJournal]:
        """Get operations submitted on-chain but never recorded."""
        stmt = (
            select(ExecutionJournal)
            .where(ExecutionJournal.status == JournalStatus.SUBMITTED.value)
            .order_by(ExecutionJournal.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_stale_operations(self, claimed_before: datetime) -> list[ExecutionJournal]:
        """Get operations claimed before `claimed_before` that never got a hash."""
        stmt = (
            select(ExecutionJournal)
            .where(
                ExecutionJournal.status == JournalStatus.PENDING.value,
                ExecutionJournal.created_at <= claimed_before,
            )
            .order_by(ExecutionJournal.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def _require_operation(self, operation_id: str) -> ExecutionJournal:
        entry = await self.get_operation(operation_id)
        if entry is None:
            raise ValueError(f"Unknown operation: {operation_id}")
        return entry
