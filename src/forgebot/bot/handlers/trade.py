"""Quote and confirmation steps shared by the buy and sell workflows."""

import logging
import secrets
import time
from typing import Union

from forgebot.bot.context import HandlerContext
from forgebot.bot.events import Reply
from forgebot.bot.keyboards import confirm_keyboard
from forgebot.bot.states import (
    BuyAmount,
    BuyConfirm,
    GasSnapshot,
    QuoteSnapshot,
    SellAmount,
    SellConfirm,
)
from forgebot.errors import UpstreamError
from forgebot.pipeline.execution import ExecutionRequest, ExecutionResult
from forgebot.utils.formatters import format_transaction_details, format_units

logger = logging.getLogger(__name__)

QUOTE_EXPIRED = "⌛ Quote expired. Prices may have moved, so the trade was not executed.\n\nPlease start again."
QUOTE_RETRY_HINT = "\n\nPlease enter the amount again or type /cancel to abort."


async def quote_and_confirm(
    ctx: HandlerContext,
    state: Union[BuyAmount, SellAmount],
    confirm_cls: type[Union[BuyConfirm, SellConfirm]],
    amount_text: str,
    from_amount: int,
    label: str,
) -> Reply:
    """Quote a validated amount and move to the confirm step.

    A failed quote leaves the amount step in place so the user can retry.
    """
    session = ctx.session
    gas = ctx.services.aggregator.get_gas_params(session.settings.gas_priority)

    try:
        quote = await ctx.services.pipeline.quote(state.from_token, state.to_token, amount_text, gas)
    except UpstreamError as e:
        logger.warning(f"Quote failed for {amount_text} {state.from_symbol} -> {state.to_symbol}: {e}")
        return Reply(response=e.user_message + QUOTE_RETRY_HINT)

    snapshot = QuoteSnapshot(
        to_amount=quote.out_amount,
        gas=GasSnapshot.capture(gas),
        quoted_at=time.time(),
        operation_id=secrets.token_hex(16),
    )
    session.enter(
        confirm_cls(
            **state.model_dump(exclude={"action", "touched_at"}),
            amount_text=amount_text,
            from_amount=from_amount,
            quote=snapshot,
        )
    )

    return Reply(
        response=format_transaction_details(
            label,
            state.from_symbol,
            state.to_symbol,
            amount_text,
            format_units(int(quote.out_amount), state.to_decimals),
            gas.price_gwei,
            session.settings.slippage,
        ),
        buttons=confirm_keyboard(),
    )


async def execute_confirmed(
    ctx: HandlerContext,
    state: Union[BuyConfirm, SellConfirm],
    kind: str,
    check_allowance: bool = False,
) -> Union[Reply, ExecutionResult]:
    """Execute a confirmed swap from the stored quote.

    The workflow is reset whatever the outcome.

    Returns:
        A Reply when execution was refused, else the ExecutionResult
    """
    session = ctx.session
    pipeline = ctx.services.pipeline

    try:
        user_id = ctx.require_user()
        if pipeline.is_stale(state.quote.quoted_at):
            logger.info(f"Rejected stale {kind} quote {state.quote.operation_id}")
            return Reply(response=QUOTE_EXPIRED)

        wallet = await ctx.get_wallet()
        if wallet is None or wallet.address.lower() != state.wallet_address.lower():
            return Reply(response="❌ Wallet not found. Please create or import a wallet first.")

        request = ExecutionRequest(
            operation_id=state.quote.operation_id,
            kind=kind,
            user_id=user_id,
            wallet=wallet,
            from_token=state.from_token,
            to_token=state.to_token,
            from_amount=state.from_amount,
            to_amount=state.quote.to_amount,
            session_id=session.id,
        )
        return await pipeline.execute_swap(
            request,
            format_units(state.from_amount, state.from_decimals),
            state.quote.gas.params(),
            session.settings.slippage,
            check_allowance=check_allowance,
        )
    finally:
        session.reset()


def outcome_reply(ctx: HandlerContext, result: ExecutionResult, success_text: str) -> Reply:
    """Turn an execution result into the final message."""
    if result.status == "approval_failed":
        if result.approval_receipt is None:
            return Reply(response="❌ Token approval failed. Please try again later.")
        return Reply(
            response=(
                f"❌ Approval Failed\n\nUnable to approve token spending.\n"
                f"View on Block Explorer: {ctx.explorer_link(result.approval_receipt.hash)}"
            )
        )

    link = ctx.explorer_link(result.tx_hash)
    if result.succeeded:
        if result.price_impact:
            success_text += f"\nPrice impact: {result.price_impact}"
        return Reply(response=f"✅ Transaction Successful\n\n{success_text}\nView on Block Explorer: {link}")
    if result.status == "pending":
        return Reply(
            response=(
                f"⏳ Transaction Submitted\n\nIt has not been confirmed yet. "
                f"Check /history shortly.\nView on Block Explorer: {link}"
            )
        )
    return Reply(response=f"❌ Transaction Failed\n\nView on Block Explorer: {link}")
