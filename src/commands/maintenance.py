#!/usr/bin/env python3
"""
Maintenance command endpoints.
"""

import logging
from argparse import Namespace
from pathlib import Path

from core.storage.locks import clean_lock_files

from .base import BaseCommand

logger = logging.getLogger(__name__)


class MaintenanceCommand(BaseCommand):
    """Offline housekeeping for the node's storage."""

    def execute(self, subcommand: str, args: Namespace) -> int:
        """Execute maintenance subcommand."""
        try:
            if subcommand == "clean-locks":
                return self.clean_locks(args)
            else:
                available = ", ".join(self.get_available_subcommands())
                self.logger.error(f"Unknown subcommand '{subcommand}'. Available: {available}")
                return 1

        except Exception as e:
            return self.handle_error(e, f"maintenance {subcommand}")

    def clean_locks(self, args: Namespace) -> int:
        """Remove stale LOCK sentinels left by an unclean exit. Do not run against a live node."""
        paths = getattr(args, 'path', None)
        directories = [Path(p) for p in paths] if paths else self.config.storage.lock_directories()

        total = 0
        for directory in directories:
            removed = clean_lock_files(directory)
            print(f"🧹 {directory}: removed {removed} lock files")
            total += removed

        print(f"✅ Removed {total} lock files")
        return 0
