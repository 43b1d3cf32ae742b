"""Factory for creating the swap aggregator.

Creates the real OpenOcean client unless dry-run mode is enabled.
"""

import logging
from typing import Optional

from forgebot.config import Settings, get_settings
from forgebot.routing.base import SwapAggregator

logger = logging.getLogger(__name__)


def create_aggregator(settings: Optional[Settings] = None) -> SwapAggregator:
    """Create the swap aggregator for the current configuration."""
    settings = settings or get_settings()

    if not settings.dry_run:
        from forgebot.routing.openocean import OpenOceanAggregator

        logger.info(f"Using OpenOcean aggregator at {settings.openocean_api_url}")
        return OpenOceanAggregator(
            base_url=settings.openocean_api_url,
            api_key=settings.openocean_api_key or None,
            settings=settings,
        )

    from forgebot.routing.dry_run import DryRunAggregator

    logger.info("Using dry-run aggregator (DRY_RUN=true)")
    return DryRunAggregator(settings=settings)
