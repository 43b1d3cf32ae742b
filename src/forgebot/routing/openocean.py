"""OpenOcean DEX aggregator integration.

Uses the OpenOcean v3 REST API for quotes and swap payloads on Base.
API docs: https://apis.openocean.finance/developer/apis/swap-api/api-v3
"""

import logging
from decimal import Decimal
from typing import Optional

import httpx

from forgebot.config import Settings
from forgebot.errors import UpstreamError
from forgebot.routing.base import SwapAggregator, SwapQuote, SwapTransaction

logger = logging.getLogger(__name__)


def _to_gwei(gas_price: int) -> str:
    """OpenOcean v3 expects gas price in gwei without decimals suffix."""
    gwei = Decimal(gas_price) / Decimal(10**9)
    return format(gwei.normalize(), "f")


class OpenOceanAggregator(SwapAggregator):
    """OpenOcean aggregator client for a single chain."""

    def __init__(
        self,
        base_url: str = "https://open-api.openocean.finance/v3/base",
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize OpenOcean client.

        Args:
            base_url: Chain-scoped API root (e.g. .../v3/base)
            api_key: Optional API key for higher rate limits
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
            settings: Settings holding the gas table
        """
        super().__init__(settings)
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    @property
    def name(self) -> str:
        return "OpenOcean"

    def _get_headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
        return headers

    async def _get(self, path: str, params: dict) -> dict:
        """GET an endpoint and return its `data` object."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(
                    f"{self.base_url}/{path}",
                    headers=self._get_headers(),
                    params=params,
                )
        except httpx.HTTPError as e:
            logger.error(f"OpenOcean {path} request failed: {e}")
            raise UpstreamError() from e

        if response.status_code != 200:
            logger.warning(f"OpenOcean API error: {response.status_code} - {response.text}")
            raise UpstreamError()

        body = response.json()
        if body.get("code") not in (None, 200) or not body.get("data"):
            logger.warning(f"OpenOcean {path} returned no data: {body}")
            raise UpstreamError()

        return body["data"]

    async def get_quote(
        self,
        from_token: str,
        to_token: str,
        amount: str,
        gas_price: int,
    ) -> SwapQuote:
        data = await self._get(
            "quote",
            {
                "inTokenAddress": from_token,
                "outTokenAddress": to_token,
                "amount": amount,
                "gasPrice": _to_gwei(gas_price),
            },
        )

        quote = SwapQuote(
            from_token=from_token,
            to_token=to_token,
            in_amount=amount,
            out_amount=str(data.get("outAmount", "0")),
            estimated_gas=int(data.get("estimatedGas", 0) or 0),
        )
        logger.info(
            f"OpenOcean quote: {amount} {from_token} -> {quote.out_amount} {to_token} "
            f"(gas {quote.estimated_gas})"
        )
        return quote

    async def get_swap(
        self,
        from_token: str,
        to_token: str,
        amount: str,
        gas_price: int,
        slippage: float,
        account: str,
    ) -> SwapTransaction:
        data = await self._get(
            "swap_quote",
            {
                "inTokenAddress": from_token,
                "outTokenAddress": to_token,
                "amount": amount,
                "gasPrice": _to_gwei(gas_price),
                "slippage": slippage,
                "account": account,
            },
        )

        try:
            return SwapTransaction(
                to=data["to"],
                data=data["data"],
                value=int(data.get("value", 0) or 0),
                gas_price=int(data.get("gasPrice", gas_price) or gas_price),
                in_amount=int(data.get("inAmount", 0) or 0),
                out_amount=int(data.get("outAmount", 0) or 0),
                price_impact=data.get("price_impact"),
                estimated_gas=int(data["estimatedGas"]) if data.get("estimatedGas") else None,
            )
        except (KeyError, ValueError, TypeError) as e:
            logger.error(f"Malformed OpenOcean swap payload: {e}")
            raise UpstreamError() from e
