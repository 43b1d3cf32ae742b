"""Trading settings: slippage tolerance and gas priority."""

import logging

from forgebot.bot.context import HandlerContext
from forgebot.bot.events import Reply
from forgebot.bot.keyboards import gas_priority_keyboard, settings_keyboard, slippage_keyboard
from forgebot.bot.router import Router, callback_prefix
from forgebot.bot.states import SettingsGasPriority, SettingsSlippage
from forgebot.errors import UserInputError
from forgebot.sessions.models import TradeSettings
from forgebot.utils.formatters import format_settings, gas_priority_label
from forgebot.utils.validators import parse_gas_priority, parse_slippage

logger = logging.getLogger(__name__)

router = Router("settings")


@router.command("settings")
@router.callback("open_settings")
async def cmd_settings(ctx: HandlerContext, event, state) -> Reply:
    """Show the settings menu."""
    user_id = ctx.require_user()

    async with ctx.services.ledger() as repo:
        stored = await repo.get_user_settings(user_id)
    if stored is not None:
        ctx.session.settings = TradeSettings(slippage=stored.slippage, gas_priority=stored.gas_priority)

    current = ctx.session.settings
    return Reply(
        response=format_settings(current.slippage, current.gas_priority),
        buttons=settings_keyboard(),
    )


@router.callback("settings_slippage")
async def open_slippage(ctx: HandlerContext, event, state) -> Reply:
    ctx.require_user()
    ctx.session.enter(SettingsSlippage())
    return Reply(
        response=(
            f"🔄 Slippage Tolerance Setting\n\n"
            f"Slippage tolerance is the maximum price difference you're willing to accept for a trade.\n\n"
            f"Current setting: {ctx.session.settings.slippage}%\n\n"
            f"Select a new slippage tolerance:"
        ),
        buttons=slippage_keyboard(),
    )


@router.callback("settings_gasPriority")
async def open_gas_priority(ctx: HandlerContext, event, state) -> Reply:
    ctx.require_user()
    ctx.session.enter(SettingsGasPriority())
    return Reply(
        response=(
            f"⛽ Gas Priority Setting\n\n"
            f"Gas priority determines how quickly your transactions are likely to be processed.\n\n"
            f"Current setting: {gas_priority_label(ctx.session.settings.gas_priority)}\n\n"
            f"Select a new gas priority:"
        ),
        buttons=gas_priority_keyboard(),
    )


@router.step(SettingsSlippage, accepts=callback_prefix("slippage_"))
@router.callback_prefix("slippage_")
async def handle_slippage(ctx: HandlerContext, event, state) -> Reply:
    """Persist a new slippage tolerance and redisplay the menu."""
    user_id = ctx.require_user()
    value = parse_slippage(event.data.removeprefix("slippage_"))
    if value is None:
        raise UserInputError("❌ Invalid slippage value. Please select 0.5%, 1.0%, or 2.0%.")

    updated = ctx.session.settings.model_copy(update={"slippage": value})
    await _save(ctx, user_id, updated)
    return Reply(
        response=format_settings(updated.slippage, updated.gas_priority, notice=f"Slippage set to {value}%."),
        buttons=settings_keyboard(),
    )


@router.step(SettingsGasPriority, accepts=callback_prefix("gasPriority_", "gas_"))
@router.callback_prefix("gasPriority_")
@router.callback_prefix("gas_")
async def handle_gas_priority(ctx: HandlerContext, event, state) -> Reply:
    """Persist a new gas priority and redisplay the menu."""
    user_id = ctx.require_user()
    priority = parse_gas_priority(event.data.split("_", 1)[1])
    if priority is None:
        raise UserInputError("❌ Invalid gas priority. Please select Low, Medium, or High.")

    updated = ctx.session.settings.model_copy(update={"gas_priority": priority})
    await _save(ctx, user_id, updated)
    return Reply(
        response=format_settings(updated.slippage, updated.gas_priority, notice=f"Gas priority set to {priority}."),
        buttons=settings_keyboard(),
    )


async def _save(ctx: HandlerContext, user_id: str, updated: TradeSettings) -> None:
    async with ctx.services.ledger() as repo:
        await repo.save_user_settings(user_id, slippage=updated.slippage, gas_priority=updated.gas_priority)
    ctx.session.settings = updated
    ctx.session.reset()
    logger.info(f"User {user_id} settings: slippage={updated.slippage} gas={updated.gas_priority}")
