"""Abstract swap aggregator interface."""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from forgebot.config import Settings, get_settings
from forgebot.pipeline.gas import GasParams, resolve_gas_params

logger = logging.getLogger(__name__)


@dataclass
class SwapQuote:
    """Priced estimate for a prospective swap."""

    from_token: str
    to_token: str
    in_amount: str  # Human-readable amount requested
    out_amount: str  # Expected output in base units of to_token
    estimated_gas: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class SwapTransaction:
    """Ready-to-sign swap payload from the aggregator."""

    to: str
    data: str
    value: int
    gas_price: int
    in_amount: int  # Base units of from_token the router will pull
    out_amount: int = 0
    price_impact: Optional[str] = None
    estimated_gas: Optional[int] = None


class SwapAggregator(ABC):
    """Abstract base class for swap price aggregators."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @property
    @abstractmethod
    def name(self) -> str:
        """Aggregator name identifier."""
        pass

    @abstractmethod
    async def get_quote(
        self,
        from_token: str,
        to_token: str,
        amount: str,
        gas_price: int,
    ) -> SwapQuote:
        """
        Get a swap quote.

        Args:
            from_token: Source token address (native placeholder for ETH)
            to_token: Destination token address
            amount: Human-readable amount of from_token
            gas_price: Gas price in wei

        Returns:
            SwapQuote with the expected output in base units

        Raises:
            UpstreamError: if no quote is available
        """
        pass

    @abstractmethod
    async def get_swap(
        self,
        from_token: str,
        to_token: str,
        amount: str,
        gas_price: int,
        slippage: float,
        account: str,
    ) -> SwapTransaction:
        """
        Build the swap transaction for `account`.

        Args:
            from_token: Source token address
            to_token: Destination token address
            amount: Human-readable amount of from_token
            gas_price: Gas price in wei
            slippage: Slippage tolerance in percent (1.0 = 1%)
            account: Sender wallet address

        Raises:
            UpstreamError: if the aggregator cannot build the swap
        """
        pass

    def get_gas_params(self, priority: str) -> GasParams:
        """Gas parameters for a priority level from the configured table."""
        return resolve_gas_params(priority, self.settings)
