"""Sell workflow: swap an ERC-20 token back to ETH.

sell_token -> (sell_custom_token) -> sell_amount -> sell_confirm
"""

import logging
from typing import Optional, Union

from forgebot.bot.context import HandlerContext
from forgebot.bot.events import Reply
from forgebot.bot.handlers.common import CANCEL_HINT, no_wallet_reply
from forgebot.bot.handlers.trade import execute_confirmed, outcome_reply, quote_and_confirm
from forgebot.bot.keyboards import sell_token_keyboard
from forgebot.bot.router import Router, callback_prefix, callbacks, text
from forgebot.bot.states import SellAmount, SellConfirm, SellCustomToken, SellTokenSelect
from forgebot.chains import is_native
from forgebot.errors import UpstreamError, UserInputError
from forgebot.pipeline.amounts import parse_amount
from forgebot.utils.formatters import format_units
from forgebot.utils.validators import is_valid_address

logger = logging.getLogger(__name__)

router = Router("sell")

SELL_PREFIX = "sell_token_"

CUSTOM_TOKEN_PROMPT = """💱 Sell Custom Token

Please send the ERC-20 token address you want to sell.

The address should look like: 0x1234...5678

You can cancel this operation by typing /cancel"""

SALE_IN_PROGRESS = "You are already selling a token. Finish this sale or type /cancel to start over."


async def _start(ctx: HandlerContext) -> Union[SellTokenSelect, Reply]:
    ctx.require_user()
    wallet = await ctx.get_wallet()
    if wallet is None:
        return no_wallet_reply()
    return SellTokenSelect(wallet_address=wallet.address)


@router.command("sell")
@router.callback("sell_token")
async def cmd_sell(ctx: HandlerContext, event, state) -> Reply:
    """Offer the tokens the user holds and has traded before."""
    started = await _start(ctx)
    if isinstance(started, Reply):
        return started

    wallets = ctx.services.wallets
    async with ctx.services.ledger() as repo:
        traded = await repo.get_unique_tokens_by_user(ctx.session.user_id)

    holdings = []
    for address in traded:
        if is_native(address):
            continue
        if await wallets.get_token_balance(address, started.wallet_address) <= 0:
            continue
        try:
            info = await wallets.get_token_info(address)
        except UpstreamError:
            logger.warning(f"Skipping token {address} without metadata")
            continue
        holdings.append((info.symbol, info.address))

    ctx.session.enter(started)

    if not holdings:
        return Reply(
            response=(
                "💱 Sell Tokens for ETH\n\n"
                "No tokens from your trade history have a balance.\n\n"
                'Choose "Custom Token" to enter a token address:'
            ),
            buttons=sell_token_keyboard([]),
        )

    return Reply(
        response="💱 Sell Tokens for ETH\n\nSelect a token to sell:",
        buttons=sell_token_keyboard(holdings),
    )


@router.step(SellTokenSelect, accepts=callback_prefix(SELL_PREFIX))
@router.callback_prefix(SELL_PREFIX)
async def handle_token_selection(ctx: HandlerContext, event, state: Optional[SellTokenSelect]) -> Reply:
    """Pick a token from the list."""
    if state is None:
        started = await _start(ctx)
        if isinstance(started, Reply):
            return started
        state = started

    address = event.data[len(SELL_PREFIX):]
    if not is_valid_address(address):
        raise UserInputError("❌ Token not recognized. Please select a token from the list.")

    return await _select(ctx, state.wallet_address, address)


@router.step(SellTokenSelect, accepts=callbacks("custom"))
async def handle_custom_selected(ctx: HandlerContext, event, state: SellTokenSelect) -> Reply:
    ctx.session.enter(SellCustomToken(wallet_address=state.wallet_address))
    return Reply(response=CUSTOM_TOKEN_PROMPT)


@router.step(SellCustomToken, accepts=callbacks("custom"))
async def handle_custom_repeated(ctx: HandlerContext, event, state: SellCustomToken) -> Reply:
    return Reply(response=CUSTOM_TOKEN_PROMPT)


@router.step(SellAmount, accepts=callbacks("custom"))
@router.step(SellConfirm, accepts=callbacks("custom"))
async def handle_custom_mid_sale(ctx: HandlerContext, event, state) -> Reply:
    """A token button pressed after the token was chosen leaves the sale as it is."""
    return Reply(response=SALE_IN_PROGRESS)


@router.step(SellCustomToken, accepts=text)
async def handle_custom_token(ctx: HandlerContext, event, state: SellCustomToken) -> Reply:
    address = event.value.strip()
    if not is_valid_address(address):
        raise UserInputError(
            "❌ Invalid token address format. Please provide a valid Ethereum address." + CANCEL_HINT
        )
    return await _select(ctx, state.wallet_address, address)


async def _select(ctx: HandlerContext, wallet_address: str, address: str) -> Reply:
    """Verify the on-chain balance and move to amount entry."""
    wallets = ctx.services.wallets
    try:
        info = await wallets.get_token_info(address)
    except UpstreamError:
        raise UserInputError(
            "❌ Unable to get information for this token. Please check the address." + CANCEL_HINT
        ) from None

    balance = await wallets.get_token_balance(info.address, wallet_address)
    if balance <= 0:
        raise UserInputError(
            f"❌ You don't have any {info.symbol} balance to sell.\n\n"
            f"Please use /buy to buy this token first or /deposit to receive it."
        )

    ctx.session.enter(
        SellAmount(
            wallet_address=wallet_address,
            from_token=info.address,
            from_symbol=info.symbol,
            from_decimals=info.decimals,
            token_balance=balance,
        )
    )
    return Reply(
        response=(
            f"💱 Sell {info.symbol}\n\n"
            f"You are selling {info.symbol} for ETH.\n\n"
            f"Your {info.symbol} balance: {format_units(balance, info.decimals)}\n\n"
            f'Please enter the amount of {info.symbol} you want to sell (or type "max" for maximum amount):'
        )
    )


@router.step(SellAmount, accepts=text)
async def handle_sell_amount(ctx: HandlerContext, event, state: SellAmount) -> Reply:
    """Validate the amount, "max" meaning the whole cached balance, and quote it."""
    if event.value.strip().lower() == "max":
        from_amount = state.token_balance
        amount_text = format_units(from_amount, state.from_decimals)
    else:
        amount_text, from_amount = parse_amount(event.value, state.from_decimals)
        if from_amount > state.token_balance:
            raise UserInputError(
                f"❌ Insufficient balance. You only have "
                f"{format_units(state.token_balance, state.from_decimals)} {state.from_symbol} available.\n\n"
                f"Please enter a smaller amount or type /cancel to abort."
            )

    return await quote_and_confirm(ctx, state, SellConfirm, amount_text, from_amount, "Sell")


@router.step(SellConfirm, accepts=callbacks("confirm_no"))
async def handle_sell_declined(ctx: HandlerContext, event, state: SellConfirm) -> Reply:
    ctx.session.reset()
    return Reply(response="Trade cancelled.")


@router.step(SellConfirm, accepts=callbacks("confirm_yes"))
async def handle_sell_confirmed(ctx: HandlerContext, event, state: SellConfirm) -> Reply:
    result = await execute_confirmed(ctx, state, "sell", check_allowance=True)
    if isinstance(result, Reply):
        return result

    received = format_units(int(result.to_amount), state.to_decimals)
    return outcome_reply(
        ctx, result, f"You sold {state.amount_text} {state.from_symbol} for {received} {state.to_symbol}"
    )
