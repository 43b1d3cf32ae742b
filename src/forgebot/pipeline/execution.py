"""Quote and execution stages shared by the buy, sell and withdraw workflows.

Execution is journaled: an operation id is claimed before anything is
submitted (at most one submission per id), the hash is stored right after
broadcast and before waiting for the receipt, and the transaction record is
written with retries. Anything left SUBMITTED is replayed by `reconcile()`;
entries still PENDING long after they were claimed are reported as stuck.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from forgebot.chains import MAX_UINT256, NATIVE_TOKEN_ADDRESS, is_native
from forgebot.config import Settings, get_settings
from forgebot.errors import ForgeBotError, UpstreamError
from forgebot.ledger.database import session_scope
from forgebot.ledger.models import TransactionStatus
from forgebot.ledger.repository import LedgerRepository
from forgebot.pipeline.gas import GasParams
from forgebot.routing.base import SwapAggregator, SwapQuote
from forgebot.wallet.base import TxParams, TxReceipt, WalletData, WalletProvider

logger = logging.getLogger(__name__)


@dataclass
class ExecutionRequest:
    """One confirmed operation, identified by its operation id."""

    operation_id: str
    kind: str  # buy, sell, withdraw
    user_id: str
    wallet: WalletData
    from_token: str
    to_token: str
    from_amount: int  # Base units
    to_amount: str = "0"  # Expected output in base units
    session_id: Optional[str] = None

    def journal_payload(self) -> dict:
        return {
            "wallet_address": self.wallet.address,
            "from_token": self.from_token,
            "to_token": self.to_token,
            "from_amount": str(self.from_amount),
            "to_amount": self.to_amount,
        }


@dataclass
class ExecutionResult:
    """Outcome of an execution attempt."""

    status: str  # success, failed, pending, approval_failed
    receipt: Optional[TxReceipt] = None
    approval_receipt: Optional[TxReceipt] = None
    to_amount: str = "0"
    recorded: bool = False
    price_impact: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == TransactionStatus.SUCCESS.value

    @property
    def tx_hash(self) -> Optional[str]:
        return self.receipt.hash if self.receipt else None


class ExecutionPipeline:
    """Shared quote -> approve -> execute -> record pipeline."""

    def __init__(
        self,
        wallets: WalletProvider,
        aggregator: SwapAggregator,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Optional[Settings] = None,
    ):
        self.wallets = wallets
        self.aggregator = aggregator
        self._session_factory = session_factory
        self.settings = settings or get_settings()

    # Quote stage
    async def quote(
        self,
        from_token: str,
        to_token: str,
        amount: str,
        gas: GasParams,
    ) -> SwapQuote:
        """Request a quote.

        Raises:
            UpstreamError: if the aggregator fails or quotes nothing
        """
        try:
            quote = await self.aggregator.get_quote(from_token, to_token, amount, gas.price)
        except ForgeBotError:
            raise
        except Exception as e:
            logger.error(f"Quote failed for {amount} {from_token} -> {to_token}: {e}")
            raise UpstreamError() from e

        if not quote.out_amount or int(quote.out_amount) <= 0:
            logger.warning(f"Empty quote for {amount} {from_token} -> {to_token}")
            raise UpstreamError("❌ No route found for this trade. Please try a different amount.")
        return quote

    def is_stale(self, quoted_at: float) -> bool:
        """Check whether a stored quote is too old to execute."""
        return time.time() - quoted_at > self.settings.quote_ttl_seconds

    # Execution stage
    async def execute_swap(
        self,
        request: ExecutionRequest,
        amount: str,
        gas: GasParams,
        slippage: float,
        check_allowance: bool = False,
    ) -> ExecutionResult:
        """Build, optionally approve, submit and record a swap.

        Raises:
            DuplicateOperationError: if the operation id was already claimed
            UpstreamError: if the swap could not be built or submitted
        """
        await self._begin(request)

        try:
            swap = await self.aggregator.get_swap(
                request.from_token,
                request.to_token,
                amount,
                gas.price,
                slippage,
                request.wallet.address,
            )

            if check_allowance and not is_native(request.from_token):
                approved, approval_receipt = await self._ensure_allowance(
                    request.wallet, request.from_token, swap.to, swap.in_amount, gas
                )
                if not approved:
                    await self._fail(request.operation_id, "approval failed")
                    return ExecutionResult(status="approval_failed", approval_receipt=approval_receipt)

            if swap.out_amount:
                request.to_amount = str(swap.out_amount)
            tx = TxParams(to=swap.to, data=swap.data, value=swap.value, gas=swap.estimated_gas)
            receipt = await self._submit(request, tx.with_fees(gas))
        except Exception as e:
            await self._fail(request.operation_id, str(e) or type(e).__name__)
            if isinstance(e, ForgeBotError):
                raise
            logger.exception(f"Swap execution failed for operation {request.operation_id}")
            raise UpstreamError() from e

        result = await self._settle(request, receipt)
        result.price_impact = swap.price_impact
        return result

    async def execute_transfer(
        self,
        request: ExecutionRequest,
        to_address: str,
        gas: GasParams,
    ) -> ExecutionResult:
        """Submit and record a native transfer.

        Raises:
            DuplicateOperationError: if the operation id was already claimed
            UpstreamError: if the transfer could not be submitted
        """
        await self._begin(request)

        try:
            tx = TxParams(to=to_address, value=request.from_amount)
            receipt = await self._submit(request, tx.with_fees(gas))
        except Exception as e:
            await self._fail(request.operation_id, str(e) or type(e).__name__)
            if isinstance(e, ForgeBotError):
                raise
            logger.exception(f"Transfer failed for operation {request.operation_id}")
            raise UpstreamError() from e

        return await self._settle(request, receipt)

    async def _submit(self, request: ExecutionRequest, tx: TxParams) -> TxReceipt:
        """Submit `tx`, journaling its hash as soon as it is broadcast.

        Raises only if nothing was broadcast. Once a hash exists, a failed
        wait yields a pending receipt so the transaction is still recorded.
        """
        broadcast: list[str] = []

        async def on_broadcast(tx_hash: str) -> None:
            broadcast.append(tx_hash)
            await self._retry(
                f"journal {request.operation_id}",
                lambda repo: repo.mark_operation_submitted(
                    request.operation_id,
                    tx_hash,
                    {"status": TransactionStatus.PENDING.value, "to_amount": request.to_amount},
                ),
            )

        try:
            return await self.wallets.execute_transaction(request.wallet, tx, on_broadcast=on_broadcast)
        except Exception as e:
            if not broadcast:
                raise
            logger.warning(f"Outcome of {broadcast[0]} unknown, recording as pending: {e}")
            return TxReceipt(hash=broadcast[0], status=TransactionStatus.PENDING.value)

    async def _ensure_allowance(
        self,
        wallet: WalletData,
        token: str,
        spender: str,
        required: int,
        gas: GasParams,
    ) -> tuple[bool, Optional[TxReceipt]]:
        """Approve `spender` for the maximum amount if the allowance is short."""
        allowance = await self.wallets.get_token_allowance(token, wallet.address, spender)
        if allowance >= required:
            return True, None

        logger.info(f"Approving {token} for {spender} (allowance {allowance} < {required})")
        receipt = await self.wallets.execute_contract_method(
            wallet, token, "approve", [spender, MAX_UINT256], gas
        )
        if not receipt.succeeded:
            logger.warning(f"Approval transaction {receipt.hash} failed")
            return False, receipt

        allowance = await self.wallets.get_token_allowance(token, wallet.address, spender)
        if allowance < required:
            logger.warning(f"Allowance still insufficient after approval: {allowance} < {required}")
            return False, receipt
        return True, receipt

    # Journal
    async def _begin(self, request: ExecutionRequest) -> None:
        async with session_scope(self._session_factory) as db:
            await LedgerRepository(db).begin_operation(
                operation_id=request.operation_id,
                user_id=request.user_id,
                kind=request.kind,
                payload=request.journal_payload(),
                session_id=request.session_id,
            )

    async def _fail(self, operation_id: str, error: str) -> None:
        try:
            async with session_scope(self._session_factory) as db:
                await LedgerRepository(db).mark_operation_failed(operation_id, error)
        except Exception:
            logger.exception(f"Could not mark operation {operation_id} failed")

    async def _settle(self, request: ExecutionRequest, receipt: TxReceipt) -> ExecutionResult:
        """Persist the outcome of a submitted transaction."""
        updates = {
            "status": receipt.status,
            "gas_used": str(receipt.gas_used),
            "to_amount": request.to_amount,
        }
        await self._retry(
            f"journal {request.operation_id}",
            lambda repo: repo.mark_operation_submitted(request.operation_id, receipt.hash, updates),
        )
        recorded = await self._retry(
            f"record {receipt.hash}",
            lambda repo: self._write_record(repo, request, receipt),
        )

        if not recorded:
            logger.error(
                f"Transaction {receipt.hash} for operation {request.operation_id} was submitted "
                f"but not recorded; run reconciliation"
            )

        return ExecutionResult(
            status=receipt.status,
            receipt=receipt,
            to_amount=request.to_amount,
            recorded=recorded,
        )

    async def _write_record(
        self,
        repo: LedgerRepository,
        request: ExecutionRequest,
        receipt: TxReceipt,
    ) -> None:
        await repo.save_transaction(
            tx_hash=receipt.hash,
            user_id=request.user_id,
            wallet_address=request.wallet.address,
            from_token=request.from_token,
            to_token=request.to_token,
            from_amount=str(request.from_amount),
            status=receipt.status,
            to_amount=request.to_amount,
            gas_used=str(receipt.gas_used),
        )
        await repo.mark_operation_recorded(request.operation_id)

    async def _retry(self, what: str, action) -> bool:
        attempts = max(1, self.settings.record_retry_attempts)
        for attempt in range(1, attempts + 1):
            try:
                async with session_scope(self._session_factory) as db:
                    await action(LedgerRepository(db))
                return True
            except Exception as e:
                logger.warning(f"Writing {what} failed (attempt {attempt}/{attempts}): {e}")
                if attempt < attempts:
                    await asyncio.sleep(self.settings.record_retry_delay)
        return False

    # Reconciliation
    async def reconcile(self) -> int:
        """Write records for operations submitted but never recorded.

        Returns:
            Number of operations reconciled
        """
        async with session_scope(self._session_factory) as db:
            pending = await LedgerRepository(db).get_unrecorded_operations()
            entries = [
                (e.operation_id, e.user_id, e.tx_hash, dict(e.payload or {})) for e in pending
            ]

        count = 0
        for operation_id, user_id, tx_hash, payload in entries:
            if not tx_hash:
                continue
            async with session_scope(self._session_factory) as db:
                repo = LedgerRepository(db)
                await repo.save_transaction(
                    tx_hash=tx_hash,
                    user_id=user_id,
                    wallet_address=payload.get("wallet_address", ""),
                    from_token=payload.get("from_token", NATIVE_TOKEN_ADDRESS),
                    to_token=payload.get("to_token", NATIVE_TOKEN_ADDRESS),
                    from_amount=payload.get("from_amount", "0"),
                    status=payload.get("status", TransactionStatus.PENDING.value),
                    to_amount=payload.get("to_amount", "0"),
                    gas_used=payload.get("gas_used"),
                )
                await repo.mark_operation_recorded(operation_id)
            logger.info(f"Reconciled operation {operation_id} ({tx_hash})")
            count += 1

        for operation_id, user_id, claimed_at in await self.find_stuck_operations():
            logger.error(
                f"Operation {operation_id} for user {user_id} claimed at {claimed_at} has no "
                f"transaction hash; check the wallet on-chain before retrying"
            )

        return count

    async def find_stuck_operations(self) -> list[tuple[str, str, datetime]]:
        """Operations still PENDING after the stale threshold.

        These were claimed but no hash was journaled: either the process
        stopped mid-submission or the node never answered.
        """
        cutoff = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(
            seconds=self.settings.journal_stale_after_seconds
        )
        async with session_scope(self._session_factory) as db:
            entries = await LedgerRepository(db).get_stale_operations(cutoff)
            return [(e.operation_id, e.user_id, e.created_at) for e in entries]
