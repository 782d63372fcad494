#!/usr/bin/env python3
"""
Content Resolution Engine.

Turns a stored article reference into the most enriched version that can
be obtained, trying three tiers in strict order:

1. resident: the article already carries content, summary and analysis
2. blob: the article has a content identifier the blob store can serve
3. source: fetch the URL, extract, normalize, analyze and persist

Expected failures degrade to the previous result; only missing
collaborators raise.
"""

import dataclasses
import logging
import uuid
from typing import Any, Dict, Optional

from core.analysis.text import naive_summary
from core.exceptions import MissingCollaboratorError
from core.models import (
    Article, ArticleAnalyzed, FederatedArticlePointer, NormalizedContent, StoredArticle,
    article_from_dict, utc_now_iso,
)

logger = logging.getLogger(__name__)


def _require(component: str, collaborator: Any, name: str, method: str) -> None:
    if collaborator is None or not callable(getattr(collaborator, method, None)):
        raise MissingCollaboratorError(component, f"{name}.{method}")


class ContentResolver:
    """Resolves articles through the resident, blob and source tiers."""

    def __init__(self, local_store, analyzed_store, fetcher, parser_registry, adapter,
                 federated_store=None, target_language: Optional[str] = None):
        """
        Initialize the resolver.

        Args:
            local_store: Local article store (``save``)
            analyzed_store: Analyzed article store (``save``)
            fetcher: Object with ``async fetch(url) -> str``
            parser_registry: Object with ``lookup(hostname_or_url) -> parser``
            adapter: Enrichment adapter (``normalize``, ``analyze``)
            federated_store: Optional pointer store announced after blob writes
            target_language: Language content is translated into, None keeps it

        Raises:
            MissingCollaboratorError: If a required collaborator or method is missing
        """
        component = 'ContentResolver'
        _require(component, local_store, 'local_store', 'save')
        _require(component, analyzed_store, 'analyzed_store', 'save')
        _require(component, fetcher, 'fetcher', 'fetch')
        _require(component, parser_registry, 'parser_registry', 'lookup')
        _require(component, adapter, 'adapter', 'normalize')
        _require(component, adapter, 'adapter', 'analyze')
        if federated_store is not None:
            _require(component, federated_store, 'federated_store', 'append')

        self.local_store = local_store
        self.analyzed_store = analyzed_store
        self.fetcher = fetcher
        self.parser_registry = parser_registry
        self.adapter = adapter
        self.federated_store = federated_store
        self.target_language = target_language

    async def resolve(self, article: StoredArticle, blob_store=None) -> StoredArticle:
        """
        Resolve one article.

        Args:
            article: Article or ArticleAnalyzed to resolve
            blob_store: Blob store handle, or None to skip the blob tier

        Returns:
            The same object when already resolved, otherwise the most
            enriched version obtained
        """
        if article.is_resolved():
            logger.debug(f"Article already resolved: {article.url}")
            return article

        if article.ipfs_hash and blob_store is not None:
            from_blob = await self._resolve_from_blob(article, blob_store)
            if from_blob is not None:
                return from_blob

        if not article.url:
            logger.warning(f"Cannot resolve article {article.id!r}: no URL and no usable blob")
            return article

        return await self._resolve_from_source(article, blob_store)

    async def _resolve_from_blob(self, article: StoredArticle, blob_store) -> Optional[StoredArticle]:
        try:
            data = await blob_store.get(article.ipfs_hash)
            if not isinstance(data, dict):
                logger.info(f"Blob {article.ipfs_hash} not available, falling back to source")
                return None
            resolved = article_from_dict({**article.to_dict(), **data, 'ipfs_hash': article.ipfs_hash})
        except Exception as e:
            logger.warning(f"Blob tier failed for {article.ipfs_hash}: {e}")
            return None

        local_id = self._local_id(article)
        if resolved.analyzed and (not resolved.original_id or resolved.id == local_id):
            resolved = dataclasses.replace(resolved, id=str(uuid.uuid4()), original_id=local_id)

        logger.info(f"Resolved {resolved.url} from blob {article.ipfs_hash}")
        await self._persist(self.local_store, self._local_copy(resolved, local_id))
        if resolved.analyzed:
            await self._persist(self.analyzed_store, resolved)
        return resolved

    async def _resolve_from_source(self, article: StoredArticle, blob_store) -> StoredArticle:
        try:
            raw = await self.fetcher.fetch(article.url)
        except Exception as e:
            logger.warning(f"Fetch failed for {article.url}, returning article unchanged: {e}")
            return article
        raw = raw or ""

        content = self._extract(article.url, raw)
        normalized = await self._normalize(content)

        base_fields = article.to_dict()
        base_fields.update({
            'raw': raw,
            'content': normalized.content or content,
            'summary': normalized.summary,
            'tags': normalized.tags,
            'fetched_at': utc_now_iso(),
        })
        base = Article.from_dict(base_fields)

        final: StoredArticle = base
        analyzed = await self._analyze(base)
        if analyzed is not None:
            analyzed_fields = base.to_dict()
            analyzed_fields.update(analyzed)
            analyzed_fields.update({'id': str(uuid.uuid4()), 'original_id': self._local_id(article)})
            final = ArticleAnalyzed.from_dict(analyzed_fields)

        if blob_store is not None:
            final = await self._store_blob(final, blob_store)

        await self._persist(self.local_store, self._local_copy(final, self._local_id(article)))
        if final.analyzed:
            await self._persist(self.analyzed_store, final)

        logger.info(f"Resolved {article.url} from source (analyzed={final.analyzed})")
        return final

    @staticmethod
    def _local_id(article: StoredArticle) -> str:
        if article.analyzed and getattr(article, 'original_id', None):
            return article.original_id
        return article.id

    @staticmethod
    def _local_copy(resolved: StoredArticle, article_id: str) -> Article:
        """Plain Article carrying the enriched fields, keyed to the source article id."""
        return Article.from_dict({**resolved.to_dict(), 'id': article_id or resolved.id})

    def _extract(self, url: str, raw: str) -> str:
        try:
            parser = self.parser_registry.lookup(url)
            text = parser(raw)
        except Exception as e:
            logger.debug(f"Parser failed for {url}, using raw payload: {e}")
            return raw
        return text or raw

    async def _normalize(self, content: str) -> NormalizedContent:
        try:
            return await self.adapter.normalize(content, self.target_language)
        except Exception as e:
            logger.warning(f"Normalization failed, using first sentences: {e}")
            return NormalizedContent(content=content, summary=naive_summary(content), tags=[])

    async def _analyze(self, base: Article) -> Optional[Dict[str, Any]]:
        if not base.content:
            return None
        try:
            result = await self.adapter.analyze(base.content)
        except Exception as e:
            logger.warning(f"Analysis failed for {base.url}, keeping enriched base: {e}")
            return None
        fields = result.to_fields()
        fields['cognitive_biases'] = [b.to_dict() for b in fields.get('cognitive_biases', [])]
        return fields

    async def _store_blob(self, final: StoredArticle, blob_store) -> StoredArticle:
        try:
            cid = await blob_store.put(final.to_dict())
        except Exception as e:
            logger.warning(f"Blob write failed for {final.url}: {e}")
            return final

        final = dataclasses.replace(final, ipfs_hash=cid)
        if self.federated_store is not None:
            pointer = FederatedArticlePointer(
                cid=cid, analyzed=final.analyzed, source=final.source, edition=final.edition
            )
            try:
                await self.federated_store.append(pointer)
            except Exception as e:
                logger.warning(f"Failed to announce pointer {cid}: {e}")
        return final

    async def _persist(self, store, doc: StoredArticle) -> None:
        try:
            await store.save(doc)
        except Exception as e:
            logger.error(f"Failed to persist {doc.url or doc.id} to {getattr(store, 'name', 'store')}: {e}")
