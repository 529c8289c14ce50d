"""
Timestamped copies of the database file, kept in a `backups` directory next
to it. The study command takes one before each session and `restore` copies
the newest one back.
"""

import shutil
from datetime import datetime
from pathlib import Path
from typing import Optional

BACKUP_DIR_NAME = "backups"


def _backup_dir(db_path: Path) -> Path:
    return db_path.parent / BACKUP_DIR_NAME


def _backup_name(db_path: Path, stamp: str) -> str:
    return f"{db_path.stem}-backup-{stamp}{db_path.suffix}"


def backup_database(db_path: Path) -> Path:
    """
    Copy `db_path` into the backups directory.

    Returns:
        The backup's path, or `db_path` itself if the database does not exist yet.
    """
    if not db_path.exists():
        return db_path

    target_dir = _backup_dir(db_path)
    target_dir.mkdir(parents=True, exist_ok=True)
    target = target_dir / _backup_name(
        db_path, datetime.now().strftime("%Y%m%d-%H%M%S")
    )
    shutil.copy2(db_path, target)
    return target


def find_latest_backup(db_path: Path) -> Optional[Path]:
    """Newest backup of `db_path`; timestamps sort lexically."""
    source_dir = _backup_dir(db_path)
    if not source_dir.is_dir():
        return None
    candidates = sorted(source_dir.glob(_backup_name(db_path, "*")))
    return candidates[-1] if candidates else None
