#!/usr/bin/env python3
"""
Federated pointer store.

An append-only, in-memory list of announcements that content exists at a
content identifier. Pointers are not persisted; they are rebuilt from new
announcements after a restart.
"""

import logging
from typing import Callable, List, Optional

from core.models import FederatedArticlePointer, StoredArticle, article_from_dict
from core.storage.blobs import BlobStore
from .base import AuditedStore
from .debug import DebugLogStore

logger = logging.getLogger(__name__)

PointerPredicate = Callable[[FederatedArticlePointer], bool]


class FederatedPointerStore(AuditedStore):

    def __init__(self, blob_store: Optional[BlobStore] = None, audit: Optional[DebugLogStore] = None):
        super().__init__("federated", audit)
        self._pointers: List[FederatedArticlePointer] = []
        self._blob_store = blob_store

    def attach_blob_store(self, blob_store: Optional[BlobStore]) -> None:
        self._blob_store = blob_store

    async def append(self, pointer: FederatedArticlePointer) -> bool:
        self._pointers.append(pointer)
        logger.info(f"Announced federated pointer {pointer.cid}")
        self._schedule_audit("Saved federated pointer", {'cid': pointer.cid})
        return True

    async def all(self) -> List[FederatedArticlePointer]:
        return list(self._pointers)

    async def query(self, predicate: PointerPredicate) -> List[FederatedArticlePointer]:
        return [p for p in self._pointers if predicate(p)]

    async def get(self, cid: str) -> Optional[FederatedArticlePointer]:
        for pointer in reversed(self._pointers):
            if pointer.cid == cid:
                return pointer
        return None

    async def load_content(self, cid: str) -> Optional[StoredArticle]:
        """Read the article a pointer refers to from the blob store."""
        if self._blob_store is None:
            logger.warning(f"No blob store available to load {cid}")
            return None
        try:
            data = await self._blob_store.get(cid)
        except Exception as e:
            logger.warning(f"Failed to load federated content {cid}: {e}")
            return None
        if not isinstance(data, dict):
            return None
        try:
            return article_from_dict({**data, 'ipfs_hash': cid})
        except Exception as e:
            logger.warning(f"Undecodable federated content {cid}: {e}")
            return None

    async def close(self) -> None:
        await self.flush_audit()
