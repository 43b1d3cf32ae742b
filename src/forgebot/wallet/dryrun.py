"""Dry-run wallet provider.

Keys are generated and stored for real; balances, allowances and
executions are simulated in memory. Used when DRY_RUN=true and in tests.
"""

import logging
import secrets
from typing import Optional

from forgebot.chains import COMMON_TOKENS, MAX_UINT256, is_native
from forgebot.errors import UpstreamError
from forgebot.pipeline.gas import GasParams
from forgebot.wallet.base import TokenInfo, TxParams, TxReceipt, WalletData, WalletProvider

logger = logging.getLogger(__name__)

SIMULATED_TRANSFER_GAS = 21000
SIMULATED_CONTRACT_GAS = 150000
SIMULATED_APPROVE_GAS = 46000


def _sim_hash() -> str:
    return "0x" + secrets.token_hex(32)


class DryRunWalletProvider(WalletProvider):
    """Custodial wallet provider with an in-memory simulated chain."""

    def __init__(self, session_factory, encryptor):
        super().__init__(session_factory, encryptor)
        self.native_balances: dict[str, int] = {}
        self.token_balances: dict[tuple[str, str], int] = {}
        self.allowances: dict[tuple[str, str, str], int] = {}
        self.tokens: dict[str, TokenInfo] = {
            token.address.lower(): TokenInfo(
                address=token.address,
                symbol=token.symbol,
                decimals=token.decimals,
                name=token.name,
            )
            for token in COMMON_TOKENS.values()
        }
        self.executed: list[TxParams] = []
        self._receipts: dict[str, TxReceipt] = {}

    # Simulation controls
    def fund_native(self, address: str, wei: int) -> None:
        self.native_balances[address.lower()] = wei

    def fund_token(self, token: str, owner: str, amount: int) -> None:
        self.token_balances[(token.lower(), owner.lower())] = amount

    def register_token(self, address: str, symbol: str, decimals: int, name: str = "") -> TokenInfo:
        info = TokenInfo(address=address, symbol=symbol, decimals=decimals, name=name or symbol)
        self.tokens[address.lower()] = info
        return info

    # Chain access
    async def get_native_balance(self, address: str) -> int:
        return self.native_balances.get(address.lower(), 0)

    async def get_token_balance(self, token: str, owner: str) -> int:
        return self.token_balances.get((token.lower(), owner.lower()), 0)

    async def get_token_info(self, address: str) -> TokenInfo:
        info = self.tokens.get(address.lower())
        if info is None:
            raise UpstreamError("❌ Unable to get token information. Please check the address.")
        return info

    async def get_token_allowance(self, token: str, owner: str, spender: str) -> int:
        return self.allowances.get((token.lower(), owner.lower(), spender.lower()), 0)

    async def send_transaction(self, wallet: WalletData, tx: TxParams) -> str:
        address = wallet.address.lower()
        balance = self.native_balances.get(address, 0)
        tx_hash = _sim_hash()
        self.executed.append(tx)

        if tx.value > balance:
            logger.info(f"[DRY RUN] {tx_hash} reverted: insufficient funds")
            self._receipts[tx_hash] = TxReceipt(
                hash=tx_hash, status="failed", gas_used=SIMULATED_TRANSFER_GAS
            )
            return tx_hash

        self.native_balances[address] = balance - tx.value
        if tx.data in ("", "0x") and not is_native(tx.to):
            recipient = tx.to.lower()
            self.native_balances[recipient] = self.native_balances.get(recipient, 0) + tx.value
            gas_used = SIMULATED_TRANSFER_GAS
        else:
            gas_used = SIMULATED_CONTRACT_GAS

        logger.info(f"[DRY RUN] {tx_hash} from {wallet.address} to {tx.to} value={tx.value}")
        self._receipts[tx_hash] = TxReceipt(hash=tx_hash, status="success", gas_used=gas_used)
        return tx_hash

    async def wait_for_receipt(self, tx_hash: str) -> TxReceipt:
        return self._receipts.pop(tx_hash, TxReceipt(hash=tx_hash, status="pending"))

    async def execute_contract_method(
        self,
        wallet: WalletData,
        contract: str,
        method: str,
        args: list,
        gas: Optional[GasParams] = None,
    ) -> TxReceipt:
        if method != "approve":
            raise UpstreamError(f"Unsupported simulated method: {method}")

        spender, amount = args
        self.allowances[(contract.lower(), wallet.address.lower(), spender.lower())] = min(
            int(amount), MAX_UINT256
        )
        tx_hash = _sim_hash()
        logger.info(f"[DRY RUN] {tx_hash} approve {contract} for {spender}")
        return TxReceipt(hash=tx_hash, status="success", gas_used=SIMULATED_APPROVE_GAS)
