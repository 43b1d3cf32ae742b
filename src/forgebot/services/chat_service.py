"""Chat request handling.

Wraps one request in the session lease: load the session, bind the caller's
identity, dispatch, and (inside the dispatcher) save.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from forgebot.bot.context import Services
from forgebot.bot.dispatcher import Dispatcher
from forgebot.bot.events import Event, Reply
from forgebot.bot.handlers import setup_routers
from forgebot.config import Settings, get_settings
from forgebot.pipeline.execution import ExecutionPipeline
from forgebot.routing.factory import create_aggregator
from forgebot.sessions.models import Session
from forgebot.sessions.store import SessionStore, create_session_store
from forgebot.utils.locks import LockTimeoutError, SessionLock
from forgebot.wallet.factory import create_wallet_provider

logger = logging.getLogger(__name__)

BUSY_MESSAGE = "⏳ Your previous request is still being processed. Please wait a moment and try again."


@dataclass
class Identity:
    """Caller identity supplied by the chat frontend."""

    fid: Optional[str] = None
    username: Optional[str] = None
    display_name: Optional[str] = None


def build_services(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
) -> Services:
    """Wire the wallet provider, aggregator and pipeline for the configuration."""
    wallets = create_wallet_provider(session_factory, settings)
    aggregator = create_aggregator(settings)
    pipeline = ExecutionPipeline(wallets, aggregator, session_factory, settings)
    return Services(
        settings=settings,
        session_factory=session_factory,
        wallets=wallets,
        aggregator=aggregator,
        pipeline=pipeline,
    )


class ChatService:
    """Entry point for every chat request."""

    def __init__(
        self,
        store: SessionStore,
        dispatcher: Dispatcher,
        settings: Optional[Settings] = None,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.settings = settings or get_settings()

    @classmethod
    def create(
        cls,
        services: Services,
        store: Optional[SessionStore] = None,
    ) -> "ChatService":
        """Build the service with the combined handler routers."""
        store = store or create_session_store(services.settings, services.session_factory)
        dispatcher = Dispatcher(setup_routers(), services, store)
        return cls(store, dispatcher, services.settings)

    async def handle(
        self,
        session_id: str,
        event: Event,
        identity: Optional[Identity] = None,
    ) -> Reply:
        """Process one event for a session, serialized per session id."""
        try:
            async with SessionLock(
                session_id,
                timeout=self.settings.lease_timeout_seconds,
                operation=type(event).__name__,
            ):
                session = await self.store.get(session_id)
                if session is None:
                    session = Session(id=session_id)
                self._bind(session, identity)
                return await self.dispatcher.dispatch(event, session)
        except LockTimeoutError:
            return Reply(response=BUSY_MESSAGE)

    @staticmethod
    def _bind(session: Session, identity: Optional[Identity]) -> None:
        """Attach the caller's identity. A new fid starts a clean session."""
        if identity is None or not identity.fid:
            return

        user_id = str(identity.fid)
        if session.user_id and session.user_id != user_id:
            logger.info("Session identity changed, clearing session state")
            session.reset()
            session.wallet_address = None

        session.user_id = user_id
        session.fid = user_id
        if identity.username:
            session.username = identity.username
        if identity.display_name:
            session.display_name = identity.display_name
