"""Gas resolution. Pure; no network access."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from forgebot.config import Settings, get_settings

# Share of the base price offered as priority tip, per level
GAS_PRIORITY_PERCENTILE = {
    "low": 90,
    "medium": 95,
    "high": 99,
}


@dataclass(frozen=True)
class GasParams:
    """Gas pricing for one transaction, in wei."""

    price: int
    max_fee_per_gas: int
    max_priority_fee_per_gas: int

    @property
    def price_gwei(self) -> str:
        gwei = self.price / 10**9
        return f"{gwei:g}"


def resolve_gas_params(priority: str, settings: Optional[Settings] = None) -> GasParams:
    """Map a gas priority to concrete fee parameters.

    Args:
        priority: low, medium or high
        settings: Settings holding the gwei table (defaults to global settings)

    Raises:
        ValueError: for an unknown priority
    """
    if priority not in GAS_PRIORITY_PERCENTILE:
        raise ValueError(f"Unknown gas priority: {priority}")

    settings = settings or get_settings()
    price = int(settings.gas_price_gwei(priority) * Decimal(10**9))

    return GasParams(
        price=price,
        max_fee_per_gas=price * 2,
        max_priority_fee_per_gas=price * GAS_PRIORITY_PERCENTILE[priority] // 100,
    )
