#!/usr/bin/env python3
"""
Local article store, keyed by URL.
"""

import logging
from typing import Iterable, List, Optional

from core.models import Article, Source, StoredArticle
from .base import ArticleStore

logger = logging.getLogger(__name__)


class LocalArticleStore(ArticleStore):

    async def save(self, doc: StoredArticle, overwrite: bool = True) -> Optional[bool]:
        """Upsert ``doc``; analyzed records are stored as their plain Article form."""
        if doc.analyzed:
            doc = Article.from_dict({**doc.to_dict(), 'id': doc.original_id or doc.id})
        return await super().save(doc, overwrite)

    async def add_unique(self, articles: Iterable[StoredArticle]) -> int:
        """
        Insert articles whose URL is not stored yet.

        Existing entries keep their enriched fields.

        Returns:
            Number of articles inserted
        """
        added = 0
        for article in articles:
            if not article.url:
                logger.debug(f"Skipping article without URL: {article.id}")
                continue
            if await self.save(article, overwrite=False):
                added += 1
        logger.info(f"Added {added} new articles to {self.name}")
        return added

    async def all(self, sources: Optional[Iterable[Source]] = None) -> List[StoredArticle]:
        """All articles, optionally limited to those from enabled ``sources``."""
        articles = await super().all()
        sources = list(sources or [])
        if not sources:
            return articles

        allowed = set()
        for s in sources:
            if s.enabled:
                allowed.update((s.endpoint, s.name))
        return [
            a for a in articles
            if a.source in allowed or (a.source_meta is not None and a.source_meta.name in allowed)
        ]
