"""Wallet management: show, create, import and export."""

import logging

from forgebot.bot.context import HandlerContext
from forgebot.bot.events import Reply
from forgebot.bot.handlers.common import CANCEL_HINT, main_menu_reply, no_wallet_reply
from forgebot.bot.keyboards import (
    confirm_keyboard,
    no_wallet_keyboard,
    overwrite_keyboard,
    wallet_keyboard,
)
from forgebot.bot.router import Router, callbacks, text
from forgebot.bot.states import CreateConfirm, ExportConfirm, ImportConfirm, ImportKey
from forgebot.errors import UserInputError
from forgebot.utils.validators import is_valid_private_key, normalize_private_key

logger = logging.getLogger(__name__)

router = Router("wallet")

KEY_SAFETY = """Important:
- This wallet is stored securely on our server
- Use /export to get your private key
- Store your private key somewhere safe
- Never share your private key with anyone"""

OVERWRITE_WARNING = """⚠️ You already have a wallet set up. {verb} a new wallet will replace your current one.

Make sure you have exported your private key if you want to keep access to your current wallet.

Do you want to continue?"""

IMPORT_PROMPT = """🔑 Please send your private key.

For security reasons:
- Private keys are stored in an encrypted format
- Never share your private key with anyone else
- You can cancel this operation by typing /cancel"""

EXPORT_WARNING = """⚠️ SECURITY WARNING

You are about to export your private key. This is sensitive information that gives complete control over your wallet funds.

NEVER:
- Share your private key with anyone
- Enter it on websites
- Take screenshots of it

Are you sure you want to proceed?"""

KEEP_WALLET = "✅ Operation cancelled. Your current wallet was kept."


@router.command("wallet")
async def cmd_wallet(ctx: HandlerContext, event, state) -> Reply:
    """Show wallet address and type."""
    ctx.require_user()
    wallet = await ctx.get_wallet()
    if wallet is None:
        return Reply(
            response="❌ You don't have a wallet yet.\n\nYou can create a new wallet or import an existing one:",
            buttons=no_wallet_keyboard(),
        )

    kind = "Generated" if wallet.type == "generated" else "Imported"
    created = wallet.created_at.strftime("%Y-%m-%d") if wallet.created_at else "-"
    text_ = f"""💼 Your Wallet

Address: {wallet.address}
Type: {kind}
Created: {created}

Choose an action below or use these commands:
- /balance - Check your token balances
- /deposit - Show your deposit address
- /withdraw - Withdraw ETH to another address
- /buy - Buy tokens with ETH
- /sell - Sell tokens for ETH"""

    return Reply(response=text_, buttons=wallet_keyboard())


# ======================
# Create
# ======================


@router.command("create")
@router.callback("create_wallet")
async def cmd_create(ctx: HandlerContext, event, state) -> Reply:
    """Create a wallet, asking first if one would be replaced."""
    ctx.require_user()
    existing = await ctx.get_wallet()
    if existing is not None:
        ctx.session.enter(CreateConfirm(existing_address=existing.address))
        return Reply(
            response=OVERWRITE_WARNING.format(verb="Creating"),
            buttons=overwrite_keyboard("create"),
        )

    return await _generate(ctx)


@router.step(CreateConfirm, accepts=callbacks("confirm_create_wallet"))
@router.callback("confirm_create_wallet")
async def handle_create_confirmed(ctx: HandlerContext, event, state) -> Reply:
    ctx.require_user()
    ctx.session.reset()
    return await _generate(ctx)


@router.step(CreateConfirm, accepts=callbacks("cancel_create_wallet"))
@router.callback("cancel_create_wallet")
async def handle_create_cancelled(ctx: HandlerContext, event, state) -> Reply:
    ctx.session.reset()
    return Reply(response=KEEP_WALLET)


async def _generate(ctx: HandlerContext) -> Reply:
    user_id = ctx.require_user()
    wallet = await ctx.services.wallets.generate_wallet(user_id)
    ctx.session.wallet_address = wallet.address
    return main_menu_reply(f"✅ Wallet created successfully!\n\nAddress: {wallet.address}\n\n{KEY_SAFETY}")


# ======================
# Import
# ======================


@router.command("import")
@router.callback("import_wallet")
async def cmd_import(ctx: HandlerContext, event, state) -> Reply:
    """Ask for a private key, confirming first if a wallet would be replaced."""
    ctx.require_user()
    existing = await ctx.get_wallet()
    if existing is not None:
        ctx.session.enter(ImportConfirm(existing_address=existing.address))
        return Reply(
            response=OVERWRITE_WARNING.format(verb="Importing"),
            buttons=overwrite_keyboard("import"),
        )

    ctx.session.enter(ImportKey())
    return Reply(response=IMPORT_PROMPT)


@router.step(ImportConfirm, accepts=callbacks("confirm_import_wallet"))
@router.callback("confirm_import_wallet")
async def handle_import_confirmed(ctx: HandlerContext, event, state) -> Reply:
    ctx.require_user()
    ctx.session.enter(ImportKey())
    return Reply(response=IMPORT_PROMPT)


@router.step(ImportConfirm, accepts=callbacks("cancel_import_wallet"))
@router.callback("cancel_import_wallet")
async def handle_import_cancelled(ctx: HandlerContext, event, state) -> Reply:
    ctx.session.reset()
    return Reply(response=KEEP_WALLET)


@router.step(ImportKey, accepts=text)
async def handle_private_key(ctx: HandlerContext, event, state: ImportKey) -> Reply:
    """Store the submitted key. The key itself is never logged."""
    user_id = ctx.require_user()
    raw = event.value.strip()
    if not is_valid_private_key(raw):
        raise UserInputError(
            "❌ Invalid private key format. Please provide a valid 64-character hex key." + CANCEL_HINT
        )

    try:
        wallet = await ctx.services.wallets.import_wallet(user_id, normalize_private_key(raw))
    except ValueError:
        raise UserInputError("❌ This private key is not valid." + CANCEL_HINT) from None

    ctx.session.wallet_address = wallet.address
    ctx.session.reset()
    logger.info(f"User {user_id} imported wallet {wallet.address}")
    return main_menu_reply(f"✅ Wallet imported successfully!\n\nAddress: {wallet.address}\n\n{KEY_SAFETY}")


# ======================
# Export
# ======================


@router.command("export")
@router.callback("export_key")
async def cmd_export(ctx: HandlerContext, event, state) -> Reply:
    """Warn before revealing the private key."""
    ctx.require_user()
    wallet = await ctx.get_wallet()
    if wallet is None:
        return no_wallet_reply()

    ctx.session.enter(ExportConfirm())
    return Reply(response=EXPORT_WARNING, buttons=confirm_keyboard())


@router.step(ExportConfirm, accepts=callbacks("confirm_yes"))
async def handle_export_confirmed(ctx: HandlerContext, event, state: ExportConfirm) -> Reply:
    ctx.session.reset()
    wallet = await ctx.get_wallet()
    if wallet is None:
        return Reply(response="❌ Wallet not found. Please create or import a wallet first.")

    private_key = ctx.services.wallets.get_private_key(wallet)
    logger.info(f"Private key exported for user {wallet.user_id}")
    return Reply(
        response=f"""🔑 Your Private Key

{private_key}

⚠️ REMINDER

Your private key has been displayed. For security:
1. Save it in a secure password manager
2. Never share it with anyone
3. Delete any chat history containing this key"""
    )


@router.step(ExportConfirm, accepts=callbacks("confirm_no"))
async def handle_export_cancelled(ctx: HandlerContext, event, state: ExportConfirm) -> Reply:
    ctx.session.reset()
    return Reply(response="✅ Operation cancelled. Your private key was not exported.")
