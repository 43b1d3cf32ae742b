#!/usr/bin/env python3
"""Run Alembic migrations against the ledger, backing it up first.

Usage:
    python scripts/migrate.py upgrade [head]
    python scripts/migrate.py downgrade [-1]
    python scripts/migrate.py current
    python scripts/migrate.py history
    python scripts/migrate.py stamp [head]    # mark an init_db-created ledger as migrated
"""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))
sys.path.insert(0, str(PROJECT_ROOT / "scripts"))

from alembic import command
from alembic.config import Config
from dotenv import load_dotenv

from backup import create_backup

load_dotenv()


def main() -> int:
    if len(sys.argv) < 2:
        print(__doc__)
        return 1

    action, args = sys.argv[1], sys.argv[2:]
    config = Config(str(PROJECT_ROOT / "alembic.ini"))
    config.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))

    if action == "upgrade":
        create_backup(prefix="pre_migration")
        command.upgrade(config, args[0] if args else "head")
    elif action == "downgrade":
        create_backup(prefix="pre_migration")
        command.downgrade(config, args[0] if args else "-1")
    elif action == "current":
        command.current(config, verbose=True)
    elif action == "history":
        command.history(config, verbose=True)
    elif action == "stamp":
        command.stamp(config, args[0] if args else "head")
    else:
        print(f"Unknown action: {action}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
