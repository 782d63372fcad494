#!/usr/bin/env python3
"""
Lock sentinel handling for on-disk stores.

Every store directory holds a ``LOCK`` file while it is open. An unclean
exit leaves the sentinel behind and the next open fails, so startup and
shutdown both sweep the storage directories.
"""

import os
import logging
from pathlib import Path
from typing import Union

from core.exceptions import StoreLockedError

logger = logging.getLogger(__name__)

LOCK_SENTINEL = "LOCK"


def clean_lock_files(directory: Union[str, Path], sentinel: str = LOCK_SENTINEL) -> int:
    """
    Recursively remove files literally named ``sentinel`` under ``directory``.

    Args:
        directory: Root directory to scan
        sentinel: Exact file name to remove

    Returns:
        Number of files removed
    """
    root = Path(directory)
    if not root.exists():
        logger.info(f"Lock cleanup skipped, directory not found: {root}")
        return 0

    removed = 0
    for dirpath, _dirnames, filenames in os.walk(root):
        for filename in filenames:
            if filename != sentinel:
                continue
            lock_path = Path(dirpath) / filename
            try:
                lock_path.unlink()
                removed += 1
                logger.info(f"Removed stale lock file: {lock_path}")
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"Failed to remove lock file {lock_path}: {e}")

    return removed


def acquire_lock(directory: Union[str, Path], owner: str = "") -> Path:
    """
    Create the lock sentinel in ``directory``.

    Raises:
        StoreLockedError: If the sentinel already exists
    """
    lock_path = Path(directory) / LOCK_SENTINEL
    try:
        fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
    except FileExistsError:
        raise StoreLockedError(str(lock_path))
    with os.fdopen(fd, 'w', encoding='utf-8') as f:
        f.write(owner or str(os.getpid()))
    return lock_path


def release_lock(lock_path: Union[str, Path]) -> None:
    try:
        Path(lock_path).unlink()
    except FileNotFoundError:
        logger.debug(f"Lock already released: {lock_path}")
