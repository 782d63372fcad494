#!/usr/bin/env python3
"""
Analyzed article store, keyed by generated id.
"""

from typing import Optional

from core.models import StoredArticle
from .base import ArticleStore


class AnalyzedArticleStore(ArticleStore):

    async def get_by_original_id(self, original_id: str) -> Optional[StoredArticle]:
        """The analyzed record derived from the Article with ``original_id``."""
        matches = await self.query(lambda a: getattr(a, 'original_id', None) == original_id)
        return matches[0] if matches else None
