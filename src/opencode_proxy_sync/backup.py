"""First-write-wins backups of the files a sync rewrites.

A backup is a byte copy next to the target, named ``<file><suffix>``. Only
the first entry of ``BACKUP_SUFFIXES`` is ever written; the rest are
older conventions that restore still honours, in order.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Optional

from .errors import SyncIOError

logger = logging.getLogger(__name__)

BACKUP_SUFFIXES: tuple[str, ...] = (
    ".antigravity-manager.bak",
    ".antigravity.bak",
)
CURRENT_BACKUP_SUFFIX = BACKUP_SUFFIXES[0]


def backup_path_for(path: str | Path, suffix: str = CURRENT_BACKUP_SUFFIX) -> Path:
    target = Path(path)
    return target.with_name(target.name + suffix)


def find_backup(path: str | Path) -> Optional[Path]:
    """Return the highest-priority existing backup of ``path``, if any."""
    for suffix in BACKUP_SUFFIXES:
        candidate = backup_path_for(path, suffix)
        if candidate.exists():
            return candidate
    return None


def has_backup(path: str | Path) -> bool:
    return find_backup(path) is not None


def backup_file(path: str | Path) -> Optional[Path]:
    """Copy ``path`` to its backup unless one already exists.

    Returns the backup path when a copy was made, None otherwise (missing
    source or an earlier backup is kept).
    """
    source = Path(path)
    if not source.exists():
        return None

    backup = backup_path_for(source)
    if backup.exists():
        logger.debug("Backup already present, keeping %s", backup)
        return None

    try:
        shutil.copy2(str(source), str(backup))
    except OSError as exc:
        raise SyncIOError("create backup of", str(source), exc) from exc
    logger.info("Backed up %s to %s", source, backup)
    return backup


def restore_file(path: str | Path) -> Optional[Path]:
    """Move the backup of ``path`` back into place, consuming it.

    Returns the backup that was restored, or None when there was none.
    """
    target = Path(path)
    backup = find_backup(target)
    if backup is None:
        return None

    if target.exists():
        try:
            os.remove(str(target))
        except OSError as exc:
            raise SyncIOError("remove", str(target), exc) from exc
    try:
        os.rename(str(backup), str(target))
    except OSError as exc:
        raise SyncIOError(f"restore {backup.name} to", str(target), exc) from exc
    logger.info("Restored %s from %s", target, backup)
    return backup
