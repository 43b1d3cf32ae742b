"""Wallet provider interface.

Key management (generate, import, reveal) is shared by every provider and
persists encrypted keys through the ledger. Chain access (balances, token
metadata, execution) is provider-specific.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from eth_account import Account
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from forgebot.ledger.database import session_scope
from forgebot.ledger.models import Wallet, WalletType
from forgebot.ledger.repository import LedgerRepository
from forgebot.pipeline.gas import GasParams
from forgebot.wallet.keystore import KeyEncryptor

logger = logging.getLogger(__name__)


@dataclass
class WalletData:
    """Custodial wallet as seen by the workflows. Key stays encrypted."""

    user_id: str
    address: str
    encrypted_private_key: str
    type: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, wallet: Wallet) -> "WalletData":
        return cls(
            user_id=wallet.user_id,
            address=wallet.address,
            encrypted_private_key=wallet.encrypted_private_key,
            type=wallet.type,
            created_at=wallet.created_at,
        )


@dataclass
class TokenInfo:
    """ERC-20 token metadata."""

    address: str
    symbol: str
    decimals: int
    name: str


@dataclass
class TxParams:
    """Transaction to sign and submit."""

    to: str
    data: str = "0x"
    value: int = 0
    gas_price: Optional[int] = None  # Legacy pricing when no EIP-1559 fees are set
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None
    gas: Optional[int] = None  # Gas limit; estimated when None

    def with_fees(self, gas: GasParams) -> "TxParams":
        self.gas_price = gas.price
        self.max_fee_per_gas = gas.max_fee_per_gas
        self.max_priority_fee_per_gas = gas.max_priority_fee_per_gas
        return self


@dataclass
class TxReceipt:
    """Outcome of a submitted transaction."""

    hash: str
    status: str  # success, failed, pending
    gas_used: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status == "success"


class WalletProvider(ABC):
    """Abstract base class for custodial wallet providers."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        encryptor: KeyEncryptor,
    ):
        self._session_factory = session_factory
        self._encryptor = encryptor

    # Key management
    async def get_wallet(self, user_id: str) -> Optional[WalletData]:
        """Get the user's wallet, if any."""
        async with session_scope(self._session_factory) as db:
            wallet = await LedgerRepository(db).get_wallet_by_user_id(user_id)
            return WalletData.from_model(wallet) if wallet else None

    async def generate_wallet(self, user_id: str) -> WalletData:
        """Create a fresh key pair and store it, replacing any existing wallet."""
        account = Account.create()
        return await self._store(user_id, account, WalletType.GENERATED)

    async def import_wallet(self, user_id: str, private_key_hex: str) -> WalletData:
        """Store an existing private key, replacing any existing wallet.

        Raises:
            ValueError: if the key is not a valid secp256k1 private key
        """
        account = Account.from_key(private_key_hex)
        return await self._store(user_id, account, WalletType.IMPORTED)

    def get_private_key(self, wallet: WalletData) -> str:
        """Decrypt the wallet's private key (0x-prefixed hex)."""
        return self._encryptor.decrypt(wallet.encrypted_private_key)

    async def _store(self, user_id: str, account: Any, wallet_type: WalletType) -> WalletData:
        private_key = "0x" + bytes(account.key).hex()
        encrypted = self._encryptor.encrypt(private_key)
        async with session_scope(self._session_factory) as db:
            wallet = await LedgerRepository(db).save_wallet(
                user_id=user_id,
                address=account.address,
                encrypted_private_key=encrypted,
                wallet_type=wallet_type.value,
            )
            data = WalletData.from_model(wallet)
        logger.info(f"Stored {wallet_type.value} wallet {account.address} for user {user_id}")
        return data

    # Chain access
    @abstractmethod
    async def get_native_balance(self, address: str) -> int:
        """Native balance in wei."""
        pass

    @abstractmethod
    async def get_token_balance(self, token: str, owner: str) -> int:
        """ERC-20 balance in base units."""
        pass

    @abstractmethod
    async def get_token_info(self, address: str) -> TokenInfo:
        """ERC-20 metadata.

        Raises:
            UpstreamError: if the address is not a readable token contract
        """
        pass

    @abstractmethod
    async def get_token_allowance(self, token: str, owner: str, spender: str) -> int:
        """Current ERC-20 allowance in base units."""
        pass

    @abstractmethod
    async def send_transaction(self, wallet: WalletData, tx: TxParams) -> str:
        """Sign and broadcast a transaction without waiting for it.

        Returns:
            The transaction hash

        Raises:
            UpstreamError: if the node rejected the transaction
        """
        pass

    @abstractmethod
    async def wait_for_receipt(self, tx_hash: str) -> TxReceipt:
        """Wait for a broadcast transaction. Unmined after the timeout means status pending."""
        pass

    async def execute_transaction(
        self,
        wallet: WalletData,
        tx: TxParams,
        on_broadcast: Optional[Callable[[str], Awaitable[None]]] = None,
    ) -> TxReceipt:
        """Sign and submit a transaction, then wait for its receipt.

        `on_broadcast` is awaited with the hash after broadcast and before
        the wait, so callers can persist the hash while the outcome is open.
        """
        tx_hash = await self.send_transaction(wallet, tx)
        if on_broadcast is not None:
            await on_broadcast(tx_hash)
        return await self.wait_for_receipt(tx_hash)

    @abstractmethod
    async def execute_contract_method(
        self,
        wallet: WalletData,
        contract: str,
        method: str,
        args: list,
        gas: Optional[GasParams] = None,
    ) -> TxReceipt:
        """Call a state-changing ERC-20 method (e.g. approve) and wait for it."""
        pass
