#!/usr/bin/env python3
"""
Debug/audit log collection.

Operational events that peers and UIs need (saves, deletes, fetch batch
results, peer state) are appended here in addition to the process log.
Writing to it must never break the caller, so ``add`` swallows failures.
"""

import logging
from typing import Any, Dict, List, Optional

from core.models import DebugLogEntry
from core.storage.documents import DocumentCollection

logger = logging.getLogger(__name__)


class DebugLogStore:

    def __init__(self, collection: DocumentCollection):
        self._collection = collection

    @property
    def collection(self) -> DocumentCollection:
        return self._collection

    async def add(self, message: str, level: str = "info", meta: Optional[Dict[str, Any]] = None) -> Optional[DebugLogEntry]:
        entry = DebugLogEntry(message=message, level=level, meta=meta)
        try:
            await self._collection.put(entry.to_dict())
            return entry
        except Exception as e:
            logger.warning(f"Failed to write debug log entry '{message}': {e}")
            return None

    async def all(self) -> List[DebugLogEntry]:
        """All entries, oldest first; empty when the collection cannot be read."""
        try:
            docs = await self._collection.all()
        except Exception as e:
            logger.warning(f"Failed to read debug log: {e}")
            return []
        entries = [DebugLogEntry.from_dict(doc) for doc in docs]
        return sorted(entries, key=lambda e: e.timestamp)

    async def ensure_initialized(self) -> None:
        """Write a first entry only when the log is empty."""
        if not await self.all():
            await self.add("Debug log initialized", "info")

    async def close(self) -> None:
        await self._collection.close()
