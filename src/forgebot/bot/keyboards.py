"""Button layout builders."""

from typing import Iterable

from forgebot.bot.events import Button
from forgebot.chains import BUY_TARGETS

Keyboard = list[list[Button]]


def main_menu_keyboard() -> Keyboard:
    """Create main menu keyboard."""
    return [
        [
            Button(label="💰 Balance", callback="check_balance"),
            Button(label="📊 History", callback="check_history"),
        ],
        [
            Button(label="💱 Buy Token", callback="buy_token"),
            Button(label="💱 Sell Token", callback="sell_token"),
        ],
        [
            Button(label="⚙️ Settings", callback="open_settings"),
            Button(label="📋 Help", callback="help"),
        ],
    ]


def no_wallet_keyboard() -> Keyboard:
    return [
        [
            Button(label="Create Wallet", callback="create_wallet"),
            Button(label="Import Wallet", callback="import_wallet"),
        ]
    ]


def wallet_keyboard() -> Keyboard:
    return [
        [Button(label="🔑 Export Key", callback="export_key")],
        [
            Button(label="💰 Check Balance", callback="check_balance"),
            Button(label="📥 Deposit", callback="deposit"),
        ],
        [Button(label="📤 Withdraw", callback="withdraw")],
    ]


def balance_keyboard() -> Keyboard:
    return [
        [
            Button(label="📈 View History", callback="check_history"),
            Button(label="📥 Deposit", callback="deposit"),
        ],
        [
            Button(label="💱 Buy Token", callback="buy_token"),
            Button(label="💱 Sell Token", callback="sell_token"),
        ],
        [Button(label="📤 Withdraw", callback="withdraw")],
    ]


def buy_token_keyboard() -> Keyboard:
    """Common buy targets plus custom address entry."""
    return [
        [Button(label=symbol, callback=symbol) for symbol in BUY_TARGETS],
        [Button(label="Custom Token", callback="custom")],
    ]


def sell_token_keyboard(tokens: Iterable[tuple[str, str]], per_row: int = 2, limit: int = 6) -> Keyboard:
    """Create sell selection keyboard.

    Args:
        tokens: (symbol, address) pairs
        per_row: Buttons per row
        limit: Maximum number of token buttons
    """
    buttons = []
    row = []

    for symbol, address in list(tokens)[:limit]:
        row.append(Button(label=symbol, callback=f"sell_token_{address}"))
        if len(row) == per_row:
            buttons.append(row)
            row = []

    if row:
        buttons.append(row)

    buttons.append([Button(label="Custom Token", callback="custom")])
    return buttons


def confirm_keyboard(yes: str = "confirm_yes", no: str = "confirm_no") -> Keyboard:
    """Create a confirm/cancel keyboard."""
    return [
        [
            Button(label="✅ Confirm", callback=yes),
            Button(label="❌ Cancel", callback=no),
        ]
    ]


def withdraw_confirm_keyboard() -> Keyboard:
    return [
        [
            Button(label="Confirm", callback="withdraw_confirm_true"),
            Button(label="Cancel", callback="withdraw_confirm_false"),
        ]
    ]


def overwrite_keyboard(action: str) -> Keyboard:
    """Overwrite confirmation for create/import when a wallet exists."""
    return [
        [
            Button(label=f"Yes, {action} new wallet", callback=f"confirm_{action}_wallet"),
            Button(label="No, keep current wallet", callback=f"cancel_{action}_wallet"),
        ]
    ]


def settings_keyboard() -> Keyboard:
    return [
        [
            Button(label="Slippage", callback="settings_slippage"),
            Button(label="Gas Priority", callback="settings_gasPriority"),
        ],
        [Button(label="⬅️ Back", callback="back")],
    ]


def slippage_keyboard() -> Keyboard:
    return [
        [
            Button(label="0.5%", callback="slippage_0.5"),
            Button(label="1.0%", callback="slippage_1.0"),
            Button(label="2.0%", callback="slippage_2.0"),
        ]
    ]


def gas_priority_keyboard() -> Keyboard:
    return [
        [
            Button(label="Low", callback="gasPriority_low"),
            Button(label="Medium", callback="gasPriority_medium"),
            Button(label="High", callback="gasPriority_high"),
        ]
    ]


def history_keyboard() -> Keyboard:
    return [
        [
            Button(label="📆 Day", callback="history_day"),
            Button(label="📆 Week", callback="history_week"),
            Button(label="📆 Month", callback="history_month"),
        ]
    ]
