#!/usr/bin/env python3
"""
Node services.

The operations the HTTP boundary and the CLI run against an open node:
listing and resolving articles, background ingestion, field translation,
replication export and block serving. Return values are JSON-ready.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from dateutil import parser as date_parser

from core.exceptions import BlobNotFoundError, StoreOperationError, ValidationError
from core.models import Article, ArticleAnalyzed, Source
from core.orchestrator import BackgroundTasks, SourceFetchOrchestrator
from core.resolution import ContentResolver
from core.status import StatusStore
from core.storage.blobs import BlobStore
from core.stores import AnalyzedArticleStore, DebugLogStore, FederatedPointerStore, LocalArticleStore

logger = logging.getLogger(__name__)

TRANSLATABLE_FIELDS = ('title', 'summary', 'content')


class NodeServices:
    """Store operations exposed by a running node."""

    def __init__(self, local_store: LocalArticleStore, analyzed_store: AnalyzedArticleStore,
                 federated_store: FederatedPointerStore, debug_log: DebugLogStore,
                 resolver: ContentResolver, orchestrator: SourceFetchOrchestrator,
                 blob_store: Optional[BlobStore], status_store: StatusStore,
                 sources: List[Source], background: BackgroundTasks,
                 adapter=None, target_language: Optional[str] = None):
        self.local_store = local_store
        self.analyzed_store = analyzed_store
        self.federated_store = federated_store
        self.debug_log = debug_log
        self.resolver = resolver
        self.orchestrator = orchestrator
        self.blob_store = blob_store
        self.status_store = status_store
        self.sources = sources
        self.background = background
        self.adapter = adapter
        self.target_language = target_language

    async def get_status(self) -> Dict[str, Any]:
        return self.status_store.get()

    async def list_local(self) -> List[Dict[str, Any]]:
        return [a.to_dict() for a in await self.local_store.all(self.sources)]

    async def get_local(self, identifier: str) -> Optional[Dict[str, Any]]:
        article = await self.local_store.get_by_any_identifier(identifier)
        return article.to_dict() if article else None

    async def delete_local(self, url: str) -> None:
        await self.local_store.delete(url)

    async def save_local(self, doc: Dict[str, Any], overwrite: bool = False) -> bool:
        """
        Save one client-supplied article.

        Returns:
            True when written, False when an entry with the URL exists and
            ``overwrite`` is off

        Raises:
            ValidationError: If url, title or content is missing
        """
        for name in ('url', 'title', 'content'):
            if not doc.get(name):
                raise ValidationError(name, doc.get(name), 'non-empty article field')
        return bool(await self.local_store.save(Article.from_dict(doc), overwrite=overwrite))

    async def refetch_local(self, docs: List[Any]) -> int:
        """Insert client-supplied articles whose URL is not stored yet."""
        articles = []
        for doc in docs:
            if not isinstance(doc, dict):
                logger.warning(f"Skipping non-object article in refetch batch: {doc!r}")
                continue
            articles.append(Article.from_dict(doc))
        return await self.local_store.add_unique(articles)

    async def ingest(self, target_language: Optional[str] = None, since: Optional[str] = None,
                     skip_translation: bool = True) -> None:
        """Start a background fetch of every enabled source and return immediately."""
        since_dt = None
        if since:
            try:
                since_dt = date_parser.parse(since)
            except (ValueError, OverflowError):
                raise ValidationError('since', since, 'ISO 8601 timestamp')
        self.background.spawn(
            self.orchestrator.ingest(self.sources, target_language or self.target_language, since_dt, skip_translation),
            name="ingest",
        )

    async def resolve(self, identifier: str) -> Optional[Dict[str, Any]]:
        """Resolve the Local article matching ``identifier``."""
        article = await self.local_store.get_by_any_identifier(identifier)
        if article is None:
            return None
        resolved = await self.resolver.resolve(article, self.blob_store)
        return resolved.to_dict()

    async def translate(self, identifier: str, fields: List[str], target_language: str) -> Optional[Dict[str, Any]]:
        """
        Translate selected text fields of a Local article and store the result.

        Raises:
            ValidationError: If a field cannot be translated
        """
        unknown = [f for f in fields if f not in TRANSLATABLE_FIELDS]
        if unknown:
            raise ValidationError('fields', unknown, f"subset of {', '.join(TRANSLATABLE_FIELDS)}")
        article = await self.local_store.get_by_any_identifier(identifier)
        if article is None:
            return None
        if self.adapter is None:
            raise ValidationError('adapter', None, 'configured enrichment adapter')

        present = [f for f in fields if getattr(article, f)]
        if present:
            translated = await self.adapter.translate_texts([getattr(article, f) for f in present], target_language)
            for field_name, text in zip(present, translated):
                setattr(article, field_name, text)
            article.language = target_language
            await self.local_store.save(article)
        return article.to_dict()

    async def list_analyzed(self) -> List[Dict[str, Any]]:
        return [a.to_dict() for a in await self.analyzed_store.all()]

    async def get_analyzed(self, identifier: str) -> Optional[Dict[str, Any]]:
        article = await self.analyzed_store.get_by_any_identifier(identifier)
        if article is None:
            article = await self.analyzed_store.get_by_original_id(identifier)
        return article.to_dict() if article else None

    async def save_analyzed(self, doc: Dict[str, Any]) -> str:
        """
        Save or replace an analyzed article.

        Raises:
            ValidationError: If the article has no id
        """
        if not doc.get('id'):
            raise ValidationError('id', doc.get('id'), 'analyzed article id')
        article = ArticleAnalyzed.from_dict(doc)
        await self.analyzed_store.save(article)
        return article.id

    async def delete_analyzed(self, article_id: str) -> None:
        await self.analyzed_store.delete(article_id)

    async def list_federated(self) -> List[Dict[str, Any]]:
        return [p.to_dict() for p in await self.federated_store.all()]

    async def list_log(self) -> List[Dict[str, Any]]:
        return [e.to_dict() for e in await self.debug_log.all()]

    async def add_log(self, message: str, level: str = "info",
                      meta: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Append a client-supplied entry to the debug log.

        Raises:
            ValidationError: If the message is empty
            StoreOperationError: If the entry could not be written
        """
        if not message or not isinstance(message, str):
            raise ValidationError('message', message, 'non-empty log message')
        entry = await self.debug_log.add(message, level, meta if isinstance(meta, dict) else None)
        if entry is None:
            raise StoreOperationError('add', 'debug', RuntimeError('entry not written'))
        return entry.to_dict()

    async def audit(self, message: str, level: str = "info", meta: Optional[Dict[str, Any]] = None) -> None:
        await self.debug_log.add(message, level, meta)

    async def replication_entries(self, name: str, since: int = 0) -> Optional[List[Dict[str, Any]]]:
        stores = {
            'articles': self.local_store,
            'analyzed': self.analyzed_store,
            'debug': self.debug_log,
        }
        store = stores.get(name)
        if store is None:
            return None
        return store.collection.entries_since(since)

    async def get_block(self, cid: str) -> bytes:
        if self.blob_store is None:
            raise ValidationError('blob_store', None, 'running blob store')
        if not await self.blob_store.has(cid):
            raise BlobNotFoundError(cid)
        return await self.blob_store.get_block(cid)

    def as_handlers(self) -> Dict[str, Callable]:
        """Functions injected into the HTTP boundary, by route service name."""
        return {
            'get_status': self.get_status,
            'list_local': self.list_local,
            'get_local': self.get_local,
            'delete_local': self.delete_local,
            'save_local': self.save_local,
            'refetch_local': self.refetch_local,
            'ingest': self.ingest,
            'resolve': self.resolve,
            'translate': self.translate,
            'list_analyzed': self.list_analyzed,
            'get_analyzed': self.get_analyzed,
            'save_analyzed': self.save_analyzed,
            'delete_analyzed': self.delete_analyzed,
            'list_federated': self.list_federated,
            'list_log': self.list_log,
            'add_log': self.add_log,
            'audit': self.audit,
            'replication_entries': self.replication_entries,
            'get_block': self.get_block,
        }
