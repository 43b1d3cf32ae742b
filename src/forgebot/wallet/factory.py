"""Factory for creating the wallet provider."""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from forgebot.config import Settings, get_settings
from forgebot.wallet.base import WalletProvider
from forgebot.wallet.keystore import KeyEncryptor, create_key_encryptor

logger = logging.getLogger(__name__)


def create_wallet_provider(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Optional[Settings] = None,
    encryptor: Optional[KeyEncryptor] = None,
) -> WalletProvider:
    """Create the wallet provider for the current configuration."""
    settings = settings or get_settings()
    encryptor = encryptor or create_key_encryptor(settings)

    if not settings.dry_run:
        from forgebot.wallet.evm import EvmWalletProvider

        logger.info(f"Using EVM wallet provider on chain {settings.chain_id}")
        return EvmWalletProvider(
            session_factory,
            encryptor,
            rpc_url=settings.base_rpc_url,
            chain_id=settings.chain_id,
            confirmation_timeout=settings.confirmation_timeout,
        )

    from forgebot.wallet.dryrun import DryRunWalletProvider

    logger.info("Using dry-run wallet provider (DRY_RUN=true)")
    return DryRunWalletProvider(session_factory, encryptor)
