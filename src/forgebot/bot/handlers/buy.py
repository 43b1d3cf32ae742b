"""Buy workflow: spend ETH on an ERC-20 token.

buy_token -> (buy_custom_token) -> buy_amount -> buy_confirm
"""

import logging
from typing import Optional, Union

from forgebot.bot.context import HandlerContext
from forgebot.bot.events import Reply
from forgebot.bot.handlers.common import CANCEL_HINT, no_wallet_reply
from forgebot.bot.handlers.trade import execute_confirmed, outcome_reply, quote_and_confirm
from forgebot.bot.keyboards import buy_token_keyboard
from forgebot.bot.router import Router, any_of, callback_prefix, callbacks, text
from forgebot.bot.states import BuyAmount, BuyConfirm, BuyCustomToken, BuyTokenSelect
from forgebot.chains import COMMON_TOKENS, get_common_token
from forgebot.errors import UpstreamError, UserInputError
from forgebot.pipeline.amounts import parse_amount
from forgebot.utils.formatters import format_eth_balance, format_units
from forgebot.utils.validators import is_valid_address

logger = logging.getLogger(__name__)

router = Router("buy")

TOKEN_SYMBOLS = tuple(COMMON_TOKENS)

NO_BALANCE = (
    "❌ Your wallet has no ETH balance to buy tokens.\n\n"
    "Use /deposit to get your deposit address and add ETH first."
)

CUSTOM_TOKEN_PROMPT = """💱 Buy Custom Token

Please send the ERC-20 token address you want to buy.

The address should look like: 0x1234...5678

You can cancel this operation by typing /cancel"""


async def _start(ctx: HandlerContext) -> Union[BuyTokenSelect, Reply]:
    """Run the entry checks and return a fresh selection state."""
    ctx.require_user()
    wallet = await ctx.get_wallet()
    if wallet is None:
        return no_wallet_reply()

    balance = await ctx.services.wallets.get_native_balance(wallet.address)
    if balance <= 0:
        return Reply(response=NO_BALANCE)

    return BuyTokenSelect(wallet_address=wallet.address, balance=balance)


@router.command("buy")
@router.callback("buy_token")
async def cmd_buy(ctx: HandlerContext, event, state) -> Reply:
    """Start the buy workflow."""
    started = await _start(ctx)
    if isinstance(started, Reply):
        return started

    ctx.session.enter(started)
    return Reply(
        response=(
            f"💱 Buy Tokens with ETH\n\n"
            f"Your ETH balance: {format_eth_balance(started.balance)} ETH\n\n"
            f'Select a token to buy or choose "Custom Token" to enter a specific token address:'
        ),
        buttons=buy_token_keyboard(),
    )


@router.step(BuyTokenSelect, accepts=any_of(callbacks(*TOKEN_SYMBOLS), callback_prefix("token_")))
@router.callback(*TOKEN_SYMBOLS)
@router.callback_prefix("token_")
async def handle_token_selection(ctx: HandlerContext, event, state: Optional[BuyTokenSelect]) -> Reply:
    """Pick one of the common targets."""
    if state is None:
        started = await _start(ctx)
        if isinstance(started, Reply):
            return started
        state = started

    symbol = event.data.removeprefix("token_")
    token = get_common_token(symbol)
    if token is None:
        raise UserInputError("❌ Token symbol not recognized.")

    info = await ctx.services.wallets.get_token_info(token.address)
    ctx.session.enter(
        BuyAmount(
            **state.model_dump(exclude={"action", "touched_at"}),
            to_token=info.address,
            to_symbol=info.symbol,
            to_decimals=info.decimals,
        )
    )
    return Reply(
        response=(
            f"💱 Buy {info.symbol}\n\n"
            f"You are buying {info.symbol} with ETH.\n\n"
            f"Your ETH balance: {format_eth_balance(state.balance)} ETH\n\n"
            f"Please enter the amount of ETH you want to spend:"
        )
    )


@router.step(BuyTokenSelect, accepts=callbacks("custom"))
@router.callback("custom")
async def handle_custom_selected(ctx: HandlerContext, event, state) -> Reply:
    """Go to address entry, re-running the entry checks from scratch."""
    started = await _start(ctx)
    if isinstance(started, Reply):
        ctx.session.reset()
        return started

    ctx.session.enter(BuyCustomToken(**started.model_dump(exclude={"action", "touched_at"})))
    return Reply(response=CUSTOM_TOKEN_PROMPT)


@router.step(BuyCustomToken, accepts=text)
async def handle_custom_token(ctx: HandlerContext, event, state: BuyCustomToken) -> Reply:
    return await _select_custom(ctx, state, event.value.strip())


@router.address()
async def handle_bare_address(ctx: HandlerContext, event, state) -> Reply:
    """A token address typed with nothing in progress starts a buy of it."""
    started = await _start(ctx)
    if isinstance(started, Reply):
        return started

    custom = BuyCustomToken(**started.model_dump(exclude={"action", "touched_at"}))
    ctx.session.enter(custom)
    return await _select_custom(ctx, custom, event.value.strip())


async def _select_custom(ctx: HandlerContext, state: BuyCustomToken, address: str) -> Reply:
    if not is_valid_address(address):
        raise UserInputError(
            "❌ Invalid token address format. Please provide a valid Ethereum address." + CANCEL_HINT
        )

    try:
        info = await ctx.services.wallets.get_token_info(address)
    except UpstreamError:
        logger.info(f"No token metadata at {address}")
        raise UserInputError(
            "❌ Unable to get information for this token. It might not be a valid ERC-20 "
            "token on Base Network.\n\nPlease check the address and try again or type /cancel to abort."
        ) from None

    # Refresh the balance; it may have changed since the workflow began
    balance = await ctx.services.wallets.get_native_balance(state.wallet_address)

    ctx.session.enter(
        BuyAmount(
            wallet_address=state.wallet_address,
            balance=balance,
            to_token=info.address,
            to_symbol=info.symbol,
            to_decimals=info.decimals,
        )
    )
    return Reply(
        response=(
            f"💱 Buy {info.symbol}\n\n"
            f"You are buying {info.symbol} with ETH.\n\n"
            f"Your ETH balance: {format_eth_balance(balance)} ETH\n\n"
            f"Please enter the amount of ETH you want to spend:"
        )
    )


@router.step(BuyAmount, accepts=text)
async def handle_buy_amount(ctx: HandlerContext, event, state: BuyAmount) -> Reply:
    """Validate the amount against the cached balance and quote it."""
    amount_text, from_amount = parse_amount(event.value, state.from_decimals)

    if from_amount > state.balance:
        raise UserInputError(
            f"❌ Insufficient balance. You only have {format_eth_balance(state.balance)} ETH available.\n\n"
            f"Please enter a smaller amount or type /cancel to abort."
        )

    return await quote_and_confirm(ctx, state, BuyConfirm, amount_text, from_amount, "Buy")


@router.step(BuyConfirm, accepts=callbacks("confirm_no"))
async def handle_buy_declined(ctx: HandlerContext, event, state: BuyConfirm) -> Reply:
    ctx.session.reset()
    return Reply(response="Trade cancelled.")


@router.step(BuyConfirm, accepts=callbacks("confirm_yes"))
async def handle_buy_confirmed(ctx: HandlerContext, event, state: BuyConfirm) -> Reply:
    result = await execute_confirmed(ctx, state, "buy")
    if isinstance(result, Reply):
        return result

    bought = format_units(int(result.to_amount), state.to_decimals)
    return outcome_reply(ctx, result, f"You bought {bought} {state.to_symbol}")
