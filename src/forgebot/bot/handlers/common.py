"""Replies shared by several handler modules."""

from forgebot.bot.events import Reply
from forgebot.bot.keyboards import main_menu_keyboard, no_wallet_keyboard

WELCOME_BACK = "🤖 Welcome back to Base MEV-Protected Trading Bot!\n\nWhat would you like to do today?"

NO_WALLET = (
    "❌ You don't have a wallet yet.\n\n"
    "Use /create to create a new wallet or /import to import an existing one."
)

CANCEL_HINT = "\n\nTry again or type /cancel to abort."


def no_wallet_reply() -> Reply:
    return Reply(response=NO_WALLET, buttons=no_wallet_keyboard())


def main_menu_reply(prefix: str = "") -> Reply:
    """Main menu, optionally preceded by a status message."""
    text = f"{prefix}\n\n{WELCOME_BACK}" if prefix else WELCOME_BACK
    return Reply(response=text, buttons=main_menu_keyboard())
