#!/usr/bin/env python3
"""Execution journal reconciliation script.

Writes transaction records for operations that reached the chain but were
never recorded (for example after a crash between submission and the
record write).

Usage:
    python scripts/reconcile.py [--dry-run]

Options:
    --dry-run  List unrecorded operations without writing anything
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from dotenv import load_dotenv

from forgebot.config import get_settings
from forgebot.ledger.database import close_db, get_db, get_session_factory, init_db
from forgebot.ledger.repository import LedgerRepository
from forgebot.services.chat_service import build_services

load_dotenv()

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


async def list_unrecorded() -> int:
    """Print operations stuck between submission and recording."""
    async with get_db() as session:
        entries = await LedgerRepository(session).get_unrecorded_operations()

    if not entries:
        logger.info("No unrecorded operations")
        return 0

    for entry in entries:
        logger.info(
            f"{entry.operation_id}  {entry.kind:<8}  user={entry.user_id}  "
            f"tx={entry.tx_hash or '-'}  since={entry.updated_at}"
        )
    return len(entries)


async def main(dry_run: bool) -> None:
    await init_db()
    try:
        services = build_services(get_settings(), get_session_factory())
        if dry_run:
            count = await list_unrecorded()
            logger.info(f"{count} operation(s) would be reconciled")
            for operation_id, user_id, claimed_at in await services.pipeline.find_stuck_operations():
                logger.warning(f"Stuck without hash: {operation_id}  user={user_id}  since={claimed_at}")
            return

        count = await services.pipeline.reconcile()
        logger.info(f"Reconciled {count} operation(s)")
    finally:
        await close_db()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Execution Journal Reconciliation")
    parser.add_argument("--dry-run", action="store_true", help="List without writing")
    args = parser.parse_args()

    asyncio.run(main(args.dry_run))
