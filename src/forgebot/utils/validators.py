"""Input validators for chat text."""

import re
from typing import Optional

ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
PRIVATE_KEY_RE = re.compile(r"^(0x)?[a-fA-F0-9]{64}$")

SLIPPAGE_OPTIONS = (0.5, 1.0, 2.0)
GAS_PRIORITY_OPTIONS = ("low", "medium", "high")


def is_valid_address(value: Optional[str]) -> bool:
    """Check for a 0x-prefixed 20-byte hex address."""
    return bool(value) and ADDRESS_RE.match(value.strip()) is not None


def is_valid_private_key(value: Optional[str]) -> bool:
    """Check for a 32-byte hex private key, with or without 0x."""
    return bool(value) and PRIVATE_KEY_RE.match(value.strip()) is not None


def normalize_private_key(value: str) -> str:
    """Return the key with a 0x prefix."""
    value = value.strip()
    return value if value.startswith("0x") else f"0x{value}"


def parse_slippage(value: str) -> Optional[float]:
    """Parse one of the offered slippage values, else None."""
    try:
        slippage = float(value)
    except (TypeError, ValueError):
        return None
    return slippage if slippage in SLIPPAGE_OPTIONS else None


def parse_gas_priority(value: str) -> Optional[str]:
    """Parse one of the offered gas priorities, else None."""
    priority = (value or "").strip().lower()
    return priority if priority in GAS_PRIORITY_OPTIONS else None
