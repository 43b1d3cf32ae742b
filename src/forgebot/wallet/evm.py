"""EVM wallet provider for Base using web3.py."""

import logging
from typing import Optional

from eth_account import Account
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import TimeExhausted, Web3Exception

from forgebot.errors import UpstreamError
from forgebot.pipeline.gas import GasParams
from forgebot.wallet.base import TokenInfo, TxParams, TxReceipt, WalletData, WalletProvider

logger = logging.getLogger(__name__)

# Minimal ERC-20 ABI
ERC20_ABI = [
    {
        "constant": True,
        "inputs": [{"name": "owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "symbol",
        "outputs": [{"name": "", "type": "string"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "name",
        "outputs": [{"name": "", "type": "string"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
        ],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "type": "function",
    },
    {
        "constant": False,
        "inputs": [
            {"name": "spender", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "name": "approve",
        "outputs": [{"name": "", "type": "bool"}],
        "type": "function",
    },
]

# Fallback gas limits when estimation fails
DEFAULT_TRANSFER_GAS = 21000
DEFAULT_CONTRACT_GAS = 300000


class EvmWalletProvider(WalletProvider):
    """Custodial wallet provider backed by a Base JSON-RPC endpoint."""

    def __init__(
        self,
        session_factory,
        encryptor,
        rpc_url: str,
        chain_id: int = 8453,
        confirmation_timeout: int = 60,
    ):
        """Initialize provider.

        Args:
            session_factory: Ledger session factory for wallet storage
            encryptor: Private key encryptor
            rpc_url: Base JSON-RPC URL
            chain_id: EVM chain id (8453 for Base mainnet)
            confirmation_timeout: Seconds to wait for a receipt
        """
        super().__init__(session_factory, encryptor)
        self.w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url))
        self.chain_id = chain_id
        self.confirmation_timeout = confirmation_timeout

    def _erc20(self, address: str):
        return self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=ERC20_ABI)

    async def get_native_balance(self, address: str) -> int:
        try:
            return await self.w3.eth.get_balance(Web3.to_checksum_address(address))
        except Web3Exception as e:
            logger.error(f"Failed to get balance for {address}: {e}")
            raise UpstreamError() from e

    async def get_token_balance(self, token: str, owner: str) -> int:
        try:
            return await self._erc20(token).functions.balanceOf(
                Web3.to_checksum_address(owner)
            ).call()
        except Web3Exception as e:
            logger.error(f"Failed to get {token} balance for {owner}: {e}")
            raise UpstreamError() from e

    async def get_token_info(self, address: str) -> TokenInfo:
        contract = self._erc20(address)
        try:
            symbol = await contract.functions.symbol().call()
            decimals = await contract.functions.decimals().call()
            name = await contract.functions.name().call()
        except (Web3Exception, ValueError) as e:
            logger.warning(f"Token info lookup failed for {address}: {e}")
            raise UpstreamError("❌ Unable to get token information. Please check the address.") from e

        return TokenInfo(
            address=Web3.to_checksum_address(address),
            symbol=symbol,
            decimals=int(decimals),
            name=name,
        )

    async def get_token_allowance(self, token: str, owner: str, spender: str) -> int:
        try:
            return await self._erc20(token).functions.allowance(
                Web3.to_checksum_address(owner),
                Web3.to_checksum_address(spender),
            ).call()
        except Web3Exception as e:
            logger.error(f"Failed to get allowance for {token}: {e}")
            raise UpstreamError() from e

    async def execute_contract_method(
        self,
        wallet: WalletData,
        contract: str,
        method: str,
        args: list,
        gas: Optional[GasParams] = None,
    ) -> TxReceipt:
        args = [
            Web3.to_checksum_address(arg) if isinstance(arg, str) and Web3.is_address(arg) else arg
            for arg in args
        ]
        tx = TxParams(
            to=contract,
            data=self._erc20(contract).encode_abi(method, args=args),
            gas=DEFAULT_CONTRACT_GAS,
        )
        if gas is not None:
            tx.with_fees(gas)
        return await self.execute_transaction(wallet, tx)

    async def send_transaction(self, wallet: WalletData, tx: TxParams) -> str:
        account = Account.from_key(self.get_private_key(wallet))
        params = {
            "from": account.address,
            "to": Web3.to_checksum_address(tx.to),
            "value": tx.value,
            "data": tx.data,
            "chainId": self.chain_id,
        }

        try:
            params["nonce"] = await self.w3.eth.get_transaction_count(account.address, "pending")
            if tx.max_fee_per_gas and tx.max_priority_fee_per_gas:
                params["type"] = 2
                params["maxFeePerGas"] = tx.max_fee_per_gas
                params["maxPriorityFeePerGas"] = tx.max_priority_fee_per_gas
            else:
                params["gasPrice"] = tx.gas_price or await self.w3.eth.gas_price

            gas = tx.gas
            if gas is None:
                try:
                    gas = await self.w3.eth.estimate_gas(params)
                except (Web3Exception, ValueError) as e:
                    logger.warning(f"Gas estimation failed, using default: {e}")
                    gas = DEFAULT_TRANSFER_GAS if tx.data in ("", "0x") else DEFAULT_CONTRACT_GAS
            params["gas"] = gas

            signed = account.sign_transaction(params)
            tx_hash = Web3.to_hex(await self.w3.eth.send_raw_transaction(signed.raw_transaction))
        except (Web3Exception, ValueError) as e:
            logger.error(f"Transaction submission failed: {e}")
            raise UpstreamError() from e

        logger.info(f"Transaction broadcast: {tx_hash}")
        return tx_hash

    async def wait_for_receipt(self, tx_hash: str) -> TxReceipt:
        try:
            receipt = await self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.confirmation_timeout
            )
        except TimeExhausted:
            logger.warning(f"No receipt for {tx_hash} after {self.confirmation_timeout}s")
            return TxReceipt(hash=tx_hash, status="pending", gas_used=0)

        status = "success" if receipt["status"] == 1 else "failed"
        return TxReceipt(hash=tx_hash, status=status, gas_used=int(receipt.get("gasUsed", 0)))
