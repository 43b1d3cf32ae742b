"""Start, help, balance, history and navigation handlers."""

import logging
from datetime import datetime, timedelta, timezone

from forgebot.bot.context import HandlerContext
from forgebot.bot.events import Reply
from forgebot.bot.handlers.common import main_menu_reply, no_wallet_reply
from forgebot.bot.keyboards import balance_keyboard, history_keyboard, no_wallet_keyboard
from forgebot.bot.router import Router
from forgebot.chains import NATIVE_SYMBOL, find_token_by_address, is_native
from forgebot.errors import UpstreamError
from forgebot.sessions.models import TradeSettings
from forgebot.utils.formatters import format_balance_message, format_history, format_units

logger = logging.getLogger(__name__)

router = Router("start")

HELP_MESSAGE = """🤖 Welcome to Base MEV-Protected Trading Bot!

Trade ERC-20 tokens with MEV protection on the Base Network.

🧱 Getting Started
- /create — Create a new wallet
- /import — Import an existing wallet

💼 Wallet Management
- /wallet — View your wallet address and type
- /deposit — Get your deposit address
- /withdraw — Withdraw ETH to another address
- /balance — Check your current token balances
- /history — View your transaction history
- /export — Export your private key

📈 Trading Commands
- /buy — Buy tokens with ETH
- /sell — Sell tokens for ETH

⚙️ Settings & Info
- /settings — Configure your trading preferences
- /help — Show this help message

🛠 Tip: Start by creating or importing a wallet, then deposit ETH to begin trading."""

HISTORY_WINDOWS = {
    "day": timedelta(days=1),
    "week": timedelta(weeks=1),
    "month": timedelta(days=30),
}


@router.command("start")
async def cmd_start(ctx: HandlerContext, event, state) -> Reply:
    """Register the user on first contact, else show the main menu."""
    session = ctx.session
    if session.is_guest:
        return Reply(response="❌ Unable to identify user. Please try again later.")

    async with ctx.services.ledger() as repo:
        user = await repo.get_user(session.user_id)
        if user is None:
            await repo.create_user(
                session.user_id,
                fid=session.fid,
                username=session.username,
                display_name=session.display_name,
            )
            await repo.save_user_settings(
                session.user_id,
                slippage=ctx.settings.default_slippage,
                gas_priority=ctx.settings.default_gas_priority,
            )
            session.settings = TradeSettings(
                slippage=ctx.settings.default_slippage,
                gas_priority=ctx.settings.default_gas_priority,
            )
            logger.info(f"Registered new user {session.user_id}")
            return Reply(response=HELP_MESSAGE)

        stored = await repo.get_user_settings(session.user_id)
        if stored is not None:
            session.settings = TradeSettings(slippage=stored.slippage, gas_priority=stored.gas_priority)

    await ctx.get_wallet()
    return main_menu_reply()


@router.command("help")
@router.callback("help")
async def cmd_help(ctx: HandlerContext, event, state) -> Reply:
    return Reply(response=HELP_MESSAGE)


@router.command("back")
@router.callback("back")
async def cmd_back(ctx: HandlerContext, event, state) -> Reply:
    return main_menu_reply()


@router.command("cancel")
@router.callback("cancel")
async def cmd_cancel(ctx: HandlerContext, event, state) -> Reply:
    """Abort whatever was in progress. The dispatcher has already reset it."""
    return Reply(response="✅ Operation cancelled.")


@router.command("deposit")
@router.callback("deposit")
async def cmd_deposit(ctx: HandlerContext, event, state) -> Reply:
    """Show the deposit address."""
    ctx.require_user()
    wallet = await ctx.get_wallet()
    if wallet is None:
        return Reply(
            response="❌ You don't have a wallet yet.\n\nYou need to create or import a wallet first:",
            buttons=no_wallet_keyboard(),
        )

    text = f"""📥 Deposit ETH or Tokens

Send ETH or any ERC-20 token to your wallet address on Base Network:

{wallet.address}

Important:
- Only send assets on the Base Network
- ETH deposits usually confirm within minutes
- Use /balance to check when funds arrive
- Never share your private key with anyone"""

    return Reply(response=text)


@router.command("balance")
@router.callback("check_balance")
async def cmd_balance(ctx: HandlerContext, event, state) -> Reply:
    """Show ETH plus balances of tokens the user has traded."""
    user_id = ctx.require_user()
    wallet = await ctx.get_wallet()
    if wallet is None:
        return no_wallet_reply()

    wallets = ctx.services.wallets
    eth_balance = await wallets.get_native_balance(wallet.address)

    async with ctx.services.ledger() as repo:
        traded = await repo.get_unique_tokens_by_user(user_id)

    tokens = []
    for address in traded:
        if is_native(address):
            continue
        balance = await wallets.get_token_balance(address, wallet.address)
        if balance <= 0:
            continue
        try:
            info = await wallets.get_token_info(address)
        except UpstreamError:
            logger.warning(f"Skipping token {address} without metadata")
            continue
        tokens.append((info.symbol, balance, info.decimals))

    return Reply(
        response=format_balance_message(eth_balance, tokens),
        buttons=balance_keyboard(),
    )


@router.command("history")
@router.callback("check_history")
@router.callback_prefix("history_")
async def cmd_history(ctx: HandlerContext, event, state) -> Reply:
    """Show recorded transactions for a day, week or month."""
    user_id = ctx.require_user()
    wallet = await ctx.get_wallet()
    if wallet is None:
        return no_wallet_reply()

    timeframe = _timeframe_of(event)
    if timeframe not in HISTORY_WINDOWS:
        return Reply(response="❌ Invalid request for timeframe change.")

    # Stored timestamps are naive UTC
    since = datetime.now(timezone.utc).replace(tzinfo=None) - HISTORY_WINDOWS[timeframe]
    async with ctx.services.ledger() as repo:
        records = await repo.get_transactions(user_id, since=since)
        rows = [
            (tx.created_at, _describe(tx.from_token, tx.to_token, tx.from_amount), tx.status, tx.tx_hash)
            for tx in records
        ]

    if not rows:
        return Reply(
            response=(
                f"📊 No Transaction History\n\n"
                f"There are no transactions for the last {timeframe}.\n\n"
                f"Use /buy or /sell to make your first trade."
            ),
            buttons=history_keyboard(),
        )

    return Reply(response=format_history(timeframe, rows), buttons=history_keyboard())


def _timeframe_of(event) -> str:
    data = getattr(event, "data", "")
    if data.startswith("history_"):
        return data[len("history_"):]
    args = (getattr(event, "args", None) or "").strip().lower()
    return args or "month"


def _describe(from_token: str, to_token: str, from_amount: str) -> str:
    """Short label such as "0.05 ETH → USDC"."""
    from_symbol, from_decimals = _symbol(from_token)
    to_symbol, _ = _symbol(to_token)
    amount = format_units(int(from_amount), from_decimals) if from_decimals is not None else from_amount
    if from_token.lower() == to_token.lower():
        return f"{amount} {from_symbol} sent"
    return f"{amount} {from_symbol} → {to_symbol}"


def _symbol(address: str):
    if is_native(address):
        return NATIVE_SYMBOL, 18
    token = find_token_by_address(address)
    if token:
        return token.symbol, token.decimals
    return f"{address[:6]}…", None
