"""Handler context and service container."""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from forgebot.config import Settings
from forgebot.errors import AuthError
from forgebot.ledger.database import session_scope
from forgebot.ledger.repository import LedgerRepository
from forgebot.pipeline.execution import ExecutionPipeline
from forgebot.routing.base import SwapAggregator
from forgebot.sessions.models import Session
from forgebot.wallet.base import WalletData, WalletProvider

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Collaborators shared by all handlers."""

    settings: Settings
    session_factory: async_sessionmaker[AsyncSession]
    wallets: WalletProvider
    aggregator: SwapAggregator
    pipeline: ExecutionPipeline

    @asynccontextmanager
    async def ledger(self) -> AsyncGenerator[LedgerRepository, None]:
        """Repository over a session that commits on exit."""
        async with session_scope(self.session_factory) as db:
            yield LedgerRepository(db)


@dataclass
class HandlerContext:
    """Per-request view handed to every handler."""

    session: Session
    services: Services

    @property
    def settings(self) -> Settings:
        return self.services.settings

    def require_user(self) -> str:
        """Return the bound user id.

        Raises:
            AuthError: for guest sessions
        """
        if not self.session.user_id:
            raise AuthError()
        return self.session.user_id

    async def get_wallet(self) -> Optional[WalletData]:
        """Load the user's wallet and refresh the cached address."""
        user_id = self.require_user()
        wallet = await self.services.wallets.get_wallet(user_id)
        self.session.wallet_address = wallet.address if wallet else None
        return wallet

    def explorer_link(self, tx_hash: str) -> str:
        return f"{self.settings.explorer_tx_url}{tx_hash}"
