"""Withdraw workflow: send ETH to an external address.

withdraw_address -> withdraw_amount -> withdraw_confirm
"""

import logging
import secrets

from forgebot.bot.context import HandlerContext
from forgebot.bot.events import Reply
from forgebot.bot.handlers.common import CANCEL_HINT, no_wallet_reply
from forgebot.bot.keyboards import withdraw_confirm_keyboard
from forgebot.bot.router import Router, callbacks, text
from forgebot.bot.states import GasSnapshot, WithdrawAddress, WithdrawAmount, WithdrawConfirm
from forgebot.chains import NATIVE_DECIMALS, NATIVE_TOKEN_ADDRESS
from forgebot.errors import UserInputError
from forgebot.pipeline.amounts import parse_amount
from forgebot.pipeline.execution import ExecutionRequest
from forgebot.utils.formatters import format_eth_balance, format_withdrawal_confirmation
from forgebot.utils.validators import is_valid_address

logger = logging.getLogger(__name__)

router = Router("withdraw")


@router.command("withdraw")
@router.callback("withdraw")
async def cmd_withdraw(ctx: HandlerContext, event, state) -> Reply:
    """Start withdrawal flow."""
    ctx.require_user()
    wallet = await ctx.get_wallet()
    if wallet is None:
        return no_wallet_reply()

    balance = await ctx.services.wallets.get_native_balance(wallet.address)
    if balance <= 0:
        return Reply(
            response=(
                "❌ Your wallet has no ETH balance to withdraw.\n\n"
                "Use /deposit to get your deposit address and add funds first."
            )
        )

    ctx.session.enter(WithdrawAddress(wallet_address=wallet.address, balance=balance))

    text_ = f"""💰 Withdraw ETH

Your current balance: {format_eth_balance(balance)} ETH

Please send the destination Ethereum address you want to withdraw to.

You can cancel this operation by typing /cancel"""

    return Reply(response=text_)


@router.step(WithdrawAddress, accepts=text)
async def handle_withdraw_address(ctx: HandlerContext, event, state: WithdrawAddress) -> Reply:
    """Handle destination address input."""
    to_address = event.value.strip()
    if not is_valid_address(to_address):
        raise UserInputError(
            "❌ Invalid Ethereum address format. Please provide a valid address." + CANCEL_HINT
        )

    ctx.session.enter(
        WithdrawAmount(
            wallet_address=state.wallet_address,
            balance=state.balance,
            to_address=to_address,
        )
    )

    text_ = f"""📤 Withdraw ETH

Destination address: {to_address}

Your current balance: {format_eth_balance(state.balance)} ETH

Please enter the amount of ETH you wish to withdraw

Please leave a small amount of ETH in your wallet for gas fees.

You can cancel this operation by typing /cancel"""

    return Reply(response=text_)


@router.step(WithdrawAmount, accepts=text)
async def handle_withdraw_amount(ctx: HandlerContext, event, state: WithdrawAmount) -> Reply:
    """Handle amount input and show the confirmation."""
    amount_text, amount = parse_amount(event.value, NATIVE_DECIMALS)

    if amount > state.balance:
        raise UserInputError(
            f"❌ Insufficient balance for this withdrawal.\n\n"
            f"Amount requested: {amount_text} ETH\n"
            f"Your balance: {format_eth_balance(state.balance)} ETH\n\n"
            f"Please enter a smaller amount"
        )

    gas = ctx.services.aggregator.get_gas_params(ctx.session.settings.gas_priority)
    ctx.session.enter(
        WithdrawConfirm(
            wallet_address=state.wallet_address,
            to_address=state.to_address,
            amount=amount,
            gas=GasSnapshot.capture(gas),
            operation_id=secrets.token_hex(16),
        )
    )

    return Reply(
        response=format_withdrawal_confirmation(amount, state.to_address, gas.price_gwei),
        buttons=withdraw_confirm_keyboard(),
    )


@router.step(WithdrawConfirm, accepts=callbacks("withdraw_confirm_false"))
async def handle_withdraw_declined(ctx: HandlerContext, event, state: WithdrawConfirm) -> Reply:
    ctx.session.reset()
    return Reply(response="Withdrawal cancelled.")


@router.step(WithdrawConfirm, accepts=callbacks("withdraw_confirm_true"))
async def handle_withdraw_confirmed(ctx: HandlerContext, event, state: WithdrawConfirm) -> Reply:
    """Submit the transfer; the workflow ends whatever happens."""
    session = ctx.session
    try:
        user_id = ctx.require_user()
        wallet = await ctx.get_wallet()
        if wallet is None or wallet.address.lower() != state.wallet_address.lower():
            return Reply(response="❌ Wallet not found. Please create or import a wallet first.")

        request = ExecutionRequest(
            operation_id=state.operation_id,
            kind="withdraw",
            user_id=user_id,
            wallet=wallet,
            from_token=NATIVE_TOKEN_ADDRESS,
            to_token=NATIVE_TOKEN_ADDRESS,
            from_amount=state.amount,
            to_amount=str(state.amount),
            session_id=session.id,
        )
        result = await ctx.services.pipeline.execute_transfer(
            request, state.to_address, state.gas.params()
        )
    finally:
        session.reset()

    link = ctx.explorer_link(result.tx_hash)
    if result.succeeded:
        return Reply(
            response=(
                f"✅ Withdrawal Successful\n\n"
                f"Amount: {format_eth_balance(state.amount)} ETH\n"
                f"To: {state.to_address}\n"
                f"Transaction Hash: {result.tx_hash}\n\n"
                f"View on Block Explorer: {link}"
            )
        )
    if result.status == "pending":
        return Reply(
            response=f"⏳ Withdrawal Submitted\n\nIt has not been confirmed yet.\nView on Block Explorer: {link}"
        )
    return Reply(response=f"❌ Withdrawal Failed\n\nView on Block Explorer: {link}")
