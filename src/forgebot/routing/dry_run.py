"""Dry-run aggregator for simulated swaps."""

import logging
from decimal import Decimal, localcontext
from typing import Optional

from forgebot.chains import COMMON_TOKENS, NATIVE_DECIMALS, NATIVE_TOKEN_ADDRESS
from forgebot.config import Settings
from forgebot.errors import UpstreamError
from forgebot.routing.base import SwapAggregator, SwapQuote, SwapTransaction

logger = logging.getLogger(__name__)

# Simulated USD prices, keyed by symbol. For demonstration only.
SIMULATED_PRICES: dict[str, Decimal] = {
    "ETH": Decimal("3000.00"),
    "WETH": Decimal("3000.00"),
    "USDC": Decimal("1.00"),
    "DAI": Decimal("1.00"),
    "WBTC": Decimal("60000.00"),
}

# Price assumed for tokens outside the table
DEFAULT_PRICE = Decimal("1.00")

SIMULATED_FEE = Decimal("0.003")
SIMULATED_SWAP_GAS = 150000
SIMULATED_ROUTER = "0x6352a56caadC4F1E25CD6c75970Fa768A3304e64"


class DryRunAggregator(SwapAggregator):
    """Prices swaps from a static table and returns inert payloads."""

    def __init__(
        self,
        extra_tokens: Optional[dict[str, tuple[str, int]]] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize the simulator.

        Args:
            extra_tokens: address -> (symbol, decimals) for tokens outside
                the common list
            settings: Settings holding the gas table
        """
        super().__init__(settings)
        self._tokens: dict[str, tuple[str, int]] = {
            NATIVE_TOKEN_ADDRESS.lower(): ("ETH", NATIVE_DECIMALS),
        }
        for token in COMMON_TOKENS.values():
            self._tokens[token.address.lower()] = (token.symbol, token.decimals)
        for address, info in (extra_tokens or {}).items():
            self._tokens[address.lower()] = info

    @property
    def name(self) -> str:
        return "Dry Run"

    def register_token(self, address: str, symbol: str, decimals: int) -> None:
        self._tokens[address.lower()] = (symbol, decimals)

    def _token(self, address: str) -> tuple[str, int, Decimal]:
        symbol, decimals = self._tokens.get(address.lower(), ("TOKEN", 18))
        return symbol, decimals, SIMULATED_PRICES.get(symbol, DEFAULT_PRICE)

    def _simulate(self, from_token: str, to_token: str, amount: str) -> tuple[int, int]:
        """Return (in base units, out base units) for a human amount."""
        try:
            amount_dec = Decimal(amount)
        except Exception as e:
            raise UpstreamError() from e
        if amount_dec <= 0:
            raise UpstreamError()

        _, from_decimals, from_price = self._token(from_token)
        _, to_decimals, to_price = self._token(to_token)

        with localcontext() as ctx:
            ctx.prec = 80
            out_human = amount_dec * from_price / to_price * (1 - SIMULATED_FEE)
            in_units = int(amount_dec.scaleb(from_decimals))
            out_units = int(out_human.scaleb(to_decimals))
        return in_units, out_units

    async def get_quote(
        self,
        from_token: str,
        to_token: str,
        amount: str,
        gas_price: int,
    ) -> SwapQuote:
        _, out_units = self._simulate(from_token, to_token, amount)
        logger.info(f"[DRY RUN] quote {amount} {from_token} -> {out_units} {to_token}")
        return SwapQuote(
            from_token=from_token,
            to_token=to_token,
            in_amount=amount,
            out_amount=str(out_units),
            estimated_gas=SIMULATED_SWAP_GAS,
        )

    async def get_swap(
        self,
        from_token: str,
        to_token: str,
        amount: str,
        gas_price: int,
        slippage: float,
        account: str,
    ) -> SwapTransaction:
        in_units, out_units = self._simulate(from_token, to_token, amount)
        native_in = from_token.lower() == NATIVE_TOKEN_ADDRESS.lower()
        logger.info(f"[DRY RUN] swap payload for {account}: {amount} {from_token} -> {to_token}")
        return SwapTransaction(
            to=SIMULATED_ROUTER,
            data="0x",
            value=in_units if native_in else 0,
            gas_price=gas_price,
            in_amount=in_units,
            out_amount=out_units,
            price_impact=f"-{SIMULATED_FEE * 100:.2f}%",
            estimated_gas=SIMULATED_SWAP_GAS,
        )
