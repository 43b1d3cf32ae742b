"""Amount parsing and unit conversion."""

import re
from decimal import Decimal, InvalidOperation, localcontext

from forgebot.errors import UserInputError

AMOUNT_RE = re.compile(r"^\d+(\.\d+)?$")

INVALID_AMOUNT_MESSAGE = "❌ Invalid amount. Please enter a positive number (e.g. 0.05)."


def normalize_amount(text: str) -> str:
    """Trim the input and expand a leading "." to "0."."""
    value = (text or "").strip()
    if value.startswith("."):
        value = f"0{value}"
    return value


def to_base_units(amount: Decimal, decimals: int) -> int:
    """Scale a decimal amount by the token's precision.

    Raises:
        UserInputError: if the amount has more fractional digits than the token
    """
    with localcontext() as ctx:
        ctx.prec = 80
        scaled = amount.scaleb(decimals)
        if scaled != scaled.to_integral_value():
            raise UserInputError(
                f"❌ Too many decimal places. This token supports at most {decimals}."
            )
        return int(scaled)


def parse_amount(text: str, decimals: int) -> tuple[str, int]:
    """Parse a user-entered amount.

    Returns:
        (normalized text, amount in base units)

    Raises:
        UserInputError: for malformed or non-positive input
    """
    normalized = normalize_amount(text)
    if not AMOUNT_RE.match(normalized):
        raise UserInputError(INVALID_AMOUNT_MESSAGE)

    try:
        amount = Decimal(normalized)
    except InvalidOperation:
        raise UserInputError(INVALID_AMOUNT_MESSAGE)

    if amount <= 0:
        raise UserInputError(INVALID_AMOUNT_MESSAGE)

    return normalized, to_base_units(amount, decimals)
