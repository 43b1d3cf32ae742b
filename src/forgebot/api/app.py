"""FastAPI application factory."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from forgebot.config import get_settings
from forgebot.ledger.database import close_db, get_session_factory, init_db
from forgebot.services.chat_service import ChatService, build_services
from forgebot.sessions.store import purge_sessions_periodically

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    await init_db()

    if getattr(app.state, "chat_service", None) is None:
        services = build_services(get_settings(), get_session_factory())
        app.state.chat_service = ChatService.create(services)

    chat_service = app.state.chat_service
    reconciled = await chat_service.dispatcher.services.pipeline.reconcile()
    if reconciled:
        logger.info(f"Reconciled {reconciled} unrecorded operations")

    purge_task = asyncio.create_task(
        purge_sessions_periodically(
            chat_service.store, chat_service.settings.session_purge_interval_seconds
        )
    )

    yield
    # Shutdown
    purge_task.cancel()
    try:
        await purge_task
    except asyncio.CancelledError:
        pass
    await close_db()


def create_app(chat_service: Optional[ChatService] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="ForgeBot API",
        description="Chat trading workflow backend for Base",
        version="0.1.0",
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.chat_service = chat_service

    # CORS middleware
    origins = settings.cors_origin_list
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or (["*"] if settings.debug else []),
        allow_credentials=bool(origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routes
    from forgebot.api.routes import chat, health

    app.include_router(health.router, tags=["Health"])
    app.include_router(chat.router, prefix="/api", tags=["Chat"])

    return app
