"""Bot handlers module."""

from forgebot.bot.handlers import buy, sell, settings, start, wallet, withdraw
from forgebot.bot.router import Router


def setup_routers() -> Router:
    """Create and configure all routers."""
    main_router = Router("main")

    # Register all routers
    main_router.include_router(start.router)
    main_router.include_router(wallet.router)
    main_router.include_router(buy.router)
    main_router.include_router(sell.router)
    main_router.include_router(withdraw.router)
    main_router.include_router(settings.router)

    return main_router
