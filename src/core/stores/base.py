#!/usr/bin/env python3
"""
Article store over a replicated document collection.

One implementation serves the Local (keyed by URL) and Analyzed (keyed by
id) stores. Writes raise ``StoreOperationError`` so callers see locked or
closed storage; reads degrade to ``None``/``[]`` because callers treat a
failed read and a miss the same way. Every successful write schedules an
audit entry in the debug log without waiting for it.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Set

from core.exceptions import StoreOperationError, ValidationError
from core.models import StoredArticle, article_from_dict
from core.storage.documents import DocumentCollection
from .debug import DebugLogStore

logger = logging.getLogger(__name__)

ArticlePredicate = Callable[[StoredArticle], bool]


def strip_trailing_slash(url: Optional[str]) -> str:
    url = url or ""
    return url[:-1] if url.endswith('/') else url


class AuditedStore:
    """Store whose writes leave entries in the debug log without waiting for them."""

    def __init__(self, name: str, audit: Optional[DebugLogStore] = None):
        self.name = name
        self._audit = audit
        self._audit_tasks: Set[asyncio.Task] = set()

    def _schedule_audit(self, message: str, meta: Optional[Dict[str, Any]] = None) -> None:
        if self._audit is None:
            return
        task = asyncio.ensure_future(self._write_audit(message, meta))
        self._audit_tasks.add(task)
        task.add_done_callback(self._audit_tasks.discard)

    async def _write_audit(self, message: str, meta: Optional[Dict[str, Any]]) -> None:
        try:
            await self._audit.add(message, "info", meta)
        except Exception as e:
            logger.debug(f"Audit entry dropped for {self.name}: {e}")

    async def flush_audit(self) -> None:
        """Wait for audit entries scheduled so far."""
        if self._audit_tasks:
            await asyncio.gather(*list(self._audit_tasks), return_exceptions=True)


class ArticleStore(AuditedStore):
    """Key-indexed article collection with audit logging."""

    def __init__(self, collection: DocumentCollection, name: str, audit: Optional[DebugLogStore] = None):
        """
        Initialize the store.

        Args:
            collection: Opened document collection; its ``index_by`` is the key field
            name: Logical name used in logs and errors
            audit: Debug log receiving an entry per successful write
        """
        super().__init__(name, audit)
        self._collection = collection

    @property
    def index_by(self) -> str:
        return self._collection.index_by

    @property
    def collection(self) -> DocumentCollection:
        return self._collection

    def _key_of(self, doc: StoredArticle) -> str:
        key = getattr(doc, self.index_by, None)
        if not key:
            raise ValidationError(self.index_by, key, f"non-empty {self.index_by} to key the {self.name} store")
        return str(key)

    async def save(self, doc: StoredArticle, overwrite: bool = True) -> Optional[bool]:
        """
        Upsert ``doc`` under its index key.

        Args:
            doc: Article or ArticleAnalyzed
            overwrite: When False and the key exists, nothing is written

        Returns:
            True when written, None when skipped as a duplicate

        Raises:
            ValidationError: If the document has no key
            StoreOperationError: If the underlying collection rejects the write
        """
        key = self._key_of(doc)
        try:
            if not overwrite and await self._collection.get(key) is not None:
                logger.debug(f"Skipping duplicate {self.index_by}={key} in {self.name}")
                return None
            await self._collection.put(doc.to_dict())
        except Exception as e:
            logger.error(f"Failed to save {key} to {self.name}: {e}")
            raise StoreOperationError('save', self.name, e)

        self._schedule_audit(f"Saved article to {self.name}", {'key': key, 'analyzed': doc.analyzed})
        return True

    def _decode(self, doc: Dict[str, Any]) -> Optional[StoredArticle]:
        try:
            return article_from_dict(doc)
        except Exception as e:
            logger.warning(f"Skipping undecodable document in {self.name}: {e}")
            return None

    async def get(self, key: str) -> Optional[StoredArticle]:
        if not key:
            return None
        try:
            doc = await self._collection.get(key)
        except Exception as e:
            logger.warning(f"Read of {key} from {self.name} failed: {e}")
            return None
        return self._decode(doc) if doc else None

    async def all(self) -> List[StoredArticle]:
        try:
            docs = await self._collection.all()
        except Exception as e:
            logger.warning(f"Listing {self.name} failed: {e}")
            return []
        articles = []
        for doc in docs:
            article = self._decode(doc)
            if article is not None:
                articles.append(article)
        return articles

    async def query(self, predicate: ArticlePredicate) -> List[StoredArticle]:
        return [article for article in await self.all() if predicate(article)]

    async def delete(self, key: str) -> None:
        try:
            await self._collection.delete(key)
        except Exception as e:
            logger.error(f"Failed to delete {key} from {self.name}: {e}")
            raise StoreOperationError('delete', self.name, e)
        self._schedule_audit(f"Deleted article from {self.name}", {'key': key})

    async def _first(self, field_name: str, value: str) -> Optional[StoredArticle]:
        if field_name == self.index_by:
            return await self.get(value)
        matches = await self.query(lambda a: getattr(a, field_name, None) == value)
        return matches[0] if matches else None

    async def get_by_any_identifier(self, identifier: str) -> Optional[StoredArticle]:
        """
        Look an article up by URL, id, content identifier, then slash-normalized URL.

        The first stage with a hit wins.
        """
        if not identifier:
            return None

        for field_name in ('url', 'id', 'ipfs_hash'):
            found = await self._first(field_name, identifier)
            if found is not None:
                return found

        normalized = strip_trailing_slash(identifier)
        matches = await self.query(lambda a: strip_trailing_slash(a.url) == normalized)
        return matches[0] if matches else None

    async def close(self) -> None:
        await self.flush_audit()
        await self._collection.close()
