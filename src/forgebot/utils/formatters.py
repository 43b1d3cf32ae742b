"""Message formatting helpers."""

from datetime import datetime
from decimal import Decimal, localcontext
from typing import Iterable, Optional

GAS_PRIORITY_LABELS = {
    "low": "Low (slower, cheaper)",
    "medium": "Medium (balanced)",
    "high": "High (faster, pricier)",
}


def format_units(value: int, decimals: int) -> str:
    """Render base units as a plain decimal string without trailing zeros."""
    with localcontext() as ctx:
        ctx.prec = 80
        amount = Decimal(int(value)).scaleb(-decimals)
        text = format(amount, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def format_eth_balance(wei: int) -> str:
    """Render a wei amount as ETH with six decimals."""
    with localcontext() as ctx:
        ctx.prec = 80
        return format(Decimal(int(wei)).scaleb(-18).quantize(Decimal("0.000001")), "f")


def shorten_address(address: str) -> str:
    return f"{address[:6]}...{address[-4:]}" if len(address) > 12 else address


def gas_priority_label(priority: str) -> str:
    return GAS_PRIORITY_LABELS.get(priority, priority)


def explorer_link(explorer_url: str, tx_hash: str) -> str:
    return f"{explorer_url}{tx_hash}"


def format_transaction_details(
    action: str,
    from_symbol: str,
    to_symbol: str,
    from_amount: str,
    to_amount: str,
    gas_price_gwei: str,
    slippage: float,
) -> str:
    """Confirmation screen for a quoted swap."""
    return (
        f"🔄 Confirm {action}\n\n"
        f"You pay: {from_amount} {from_symbol}\n"
        f"You receive (estimated): {to_amount} {to_symbol}\n\n"
        f"Gas price: {gas_price_gwei} gwei\n"
        f"Slippage tolerance: {slippage}%\n\n"
        f"The quote is valid for a short time. Do you want to proceed?"
    )


def format_withdrawal_confirmation(amount_wei: int, to_address: str, gas_price_gwei: str) -> str:
    """Confirmation screen for a native withdrawal."""
    return (
        f"📤 Confirm Withdrawal\n\n"
        f"Amount: {format_eth_balance(amount_wei)} ETH\n"
        f"To: {to_address}\n"
        f"Gas price: {gas_price_gwei} gwei\n\n"
        f"⚠️ Withdrawals cannot be reversed. Please double-check the address."
    )


def format_settings(slippage: float, gas_priority: str, notice: Optional[str] = None) -> str:
    """Settings menu text."""
    header = f"⚙️ Your Settings\n\n{notice}\n\n" if notice else "⚙️ Your Settings\n\n"
    return (
        f"{header}"
        f"Slippage Tolerance: {slippage}%\n"
        f"Gas Priority: {gas_priority_label(gas_priority)}\n\n"
        f"Select a setting to change:"
    )


def format_balance_message(eth_wei: int, tokens: Iterable[tuple[str, int, int]]) -> str:
    """Balance overview.

    Args:
        eth_wei: Native balance in wei
        tokens: (symbol, balance, decimals) triples
    """
    lines = ["💰 Your Balances", "", f"ETH: {format_eth_balance(eth_wei)}"]
    token_lines = [
        f"{symbol}: {format_units(balance, decimals)}" for symbol, balance, decimals in tokens
    ]
    if token_lines:
        lines.append("")
        lines.extend(token_lines)
    else:
        lines.extend(["", "No token balances yet. Use /buy to get started."])
    return "\n".join(lines)


def format_history(timeframe: str, rows: Iterable[tuple[datetime, str, str, str]]) -> str:
    """Transaction history table.

    Args:
        timeframe: day, week or month
        rows: (created_at, description, status, tx_hash) tuples
    """
    lines = [f"📊 Transaction History ({timeframe})", ""]
    for created_at, description, status, tx_hash in rows:
        icon = "✅" if status == "success" else ("⏳" if status == "pending" else "❌")
        when = created_at.strftime("%Y-%m-%d %H:%M") if created_at else "-"
        lines.append(f"{icon} {when}  {description}  {shorten_address(tx_hash)}")
    return "\n".join(lines)
