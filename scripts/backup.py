#!/usr/bin/env python3
"""Ledger database backup utility.

Copies the SQLite ledger named by DATABASE_URL into data/backups with a
timestamp, keeping the most recent N copies.

Usage:
    python scripts/backup.py [--keep N] [--list] [--restore FILE]
"""

import argparse
import shutil
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from dotenv import load_dotenv

from forgebot.config import get_settings

load_dotenv()

BACKUP_DIR = Path("data/backups")
SQLITE_SIDE_FILES = ("-wal", "-shm")


def database_path() -> Optional[Path]:
    """Resolve the SQLite file behind DATABASE_URL, or None for other backends."""
    url = get_settings().database_url
    if not url.startswith("sqlite") or ":memory:" in url:
        return None
    return Path(url.split(":///", 1)[1])


def create_backup(prefix: str = "forgebot") -> Optional[Path]:
    db_path = database_path()
    if db_path is None or not db_path.exists():
        print(f"No SQLite database to back up ({get_settings().database_url})")
        return None

    BACKUP_DIR.mkdir(parents=True, exist_ok=True)
    backup_path = BACKUP_DIR / f"{prefix}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.db"
    shutil.copy2(db_path, backup_path)

    for suffix in SQLITE_SIDE_FILES:
        side = Path(f"{db_path}{suffix}")
        if side.exists():
            shutil.copy2(side, Path(f"{backup_path}{suffix}"))

    print(f"Created backup: {backup_path}")
    return backup_path


def _backups() -> list[Path]:
    if not BACKUP_DIR.exists():
        return []
    return sorted(BACKUP_DIR.glob("*.db"), key=lambda p: p.stat().st_mtime, reverse=True)


def rotate_backups(keep: int) -> None:
    for old in _backups()[keep:]:
        print(f"Removing old backup: {old.name}")
        old.unlink()
        for suffix in SQLITE_SIDE_FILES:
            Path(f"{old}{suffix}").unlink(missing_ok=True)


def list_backups() -> None:
    backups = _backups()
    if not backups:
        print("No backups found.")
        return

    for backup in backups:
        size = backup.stat().st_size / 1024 / 1024
        mtime = datetime.fromtimestamp(backup.stat().st_mtime)
        print(f"  {backup.name}  {size:.2f} MB  {mtime:%Y-%m-%d %H:%M:%S}")


def restore_backup(backup_file: str) -> bool:
    db_path = database_path()
    backup_path = Path(backup_file)
    if not backup_path.exists():
        backup_path = BACKUP_DIR / backup_file
    if db_path is None or not backup_path.exists():
        print(f"Cannot restore {backup_file}")
        return False

    if db_path.exists():
        create_backup(prefix="pre_restore")
    shutil.copy2(backup_path, db_path)
    print(f"Restored ledger from: {backup_path.name}")
    return True


def main() -> int:
    parser = argparse.ArgumentParser(description="Ledger database backup")
    parser.add_argument("--keep", type=int, default=10, help="Keep only N most recent backups")
    parser.add_argument("--restore", type=str, help="Restore from backup file")
    parser.add_argument("--list", action="store_true", help="List available backups")
    args = parser.parse_args()

    if args.list:
        list_backups()
    elif args.restore:
        return 0 if restore_backup(args.restore) else 1
    else:
        create_backup()
        rotate_backups(args.keep)
    return 0


if __name__ == "__main__":
    sys.exit(main())
