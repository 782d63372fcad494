#!/usr/bin/env python3
"""
Source Fetch Orchestrator.

Pulls every enabled source through fetch, feed parser, normalizer,
``since`` filter, optional title translation, batch cleaning and schema
validation. Sources are isolated from each other: whatever goes wrong
with one becomes an ``{"endpoint", "error"}`` entry and the loop moves on.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Dict, Iterable, List, Optional, Set

import pytz
from dateutil import parser as date_parser

from core.exceptions import MissingCollaboratorError, ValidationError
from core.models import Article, Source
from core.sources.feeds import FEED_PARSERS, FeedParser, parse_json
from core.sources.normalizers import (
    NORMALIZERS, Normalizer, normalize_json, normalize_published_at, clean_article_for_db,
)
from core.validation import ArticleValidator

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    """Articles gathered in one batch plus per-source errors."""
    articles: List[Article] = field(default_factory=list)
    errors: List[Dict[str, str]] = field(default_factory=list)

    def add_error(self, endpoint: str, error: str) -> None:
        self.errors.append({'endpoint': endpoint, 'error': error})

    def to_dict(self) -> Dict[str, Any]:
        return {
            'articles': [a.to_dict() for a in self.articles],
            'errors': list(self.errors),
        }


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return pytz.utc.localize(value)
    return value.astimezone(pytz.utc)


class SourceFetchOrchestrator:
    """Fetches, parses and validates articles from configured sources."""

    def __init__(self, fetcher, adapter=None, local_store=None, audit=None,
                 validator: Optional[ArticleValidator] = None,
                 feed_parsers: Optional[Dict[str, FeedParser]] = None,
                 normalizers: Optional[Dict[str, Normalizer]] = None):
        """
        Initialize the orchestrator.

        Args:
            fetcher: Object with ``async fetch(url) -> str``
            adapter: Enrichment adapter used for title translation
            local_store: Local article store receiving ``ingest`` results
            audit: Debug log store for batch reports
            validator: Article schema validator
            feed_parsers: Feed parsers by name
            normalizers: Normalizers by name
        """
        if fetcher is None or not callable(getattr(fetcher, 'fetch', None)):
            raise MissingCollaboratorError('SourceFetchOrchestrator', 'fetcher.fetch')
        self.fetcher = fetcher
        self.adapter = adapter
        self.local_store = local_store
        self.audit = audit
        self.validator = validator or ArticleValidator()
        self.feed_parsers = dict(feed_parsers or FEED_PARSERS)
        self.normalizers = dict(normalizers or NORMALIZERS)

    async def fetch_all(self, sources: Iterable[Source], target_language: Optional[str],
                        since: Optional[datetime] = None, skip_translation: bool = True) -> FetchResult:
        """
        Fetch every enabled source.

        Args:
            sources: Configured sources; disabled ones are skipped
            target_language: Language titles are translated into
            since: Drop articles published before this moment
            skip_translation: Leave titles untranslated

        Returns:
            FetchResult with valid articles and one error entry per failure
        """
        result = FetchResult()
        cutoff = _as_utc(since) if since else None

        for source in sources:
            if not source.enabled:
                continue
            try:
                await self._fetch_source(source, target_language, cutoff, skip_translation, result)
            except Exception as e:
                message = str(e)
                logger.error(f"Error fetching from {source.endpoint}: {message}")
                result.add_error(source.endpoint, message)

        logger.info(f"Total articles fetched from all sources: {len(result.articles)}")
        return result

    async def _fetch_source(self, source: Source, target_language: Optional[str],
                            cutoff: Optional[datetime], skip_translation: bool, result: FetchResult) -> None:
        logger.info(f"Fetching articles from source: {source.endpoint}")
        raw = await self.fetcher.fetch(source.endpoint)

        parser = self.feed_parsers.get(source.parser, parse_json)
        normalizer = self.normalizers.get(source.normalizer, normalize_json)

        items = parser(raw, source)
        if not isinstance(items, list):
            message = f"Parser did not return a list of articles for {source.endpoint}"
            logger.warning(message)
            result.add_error(source.endpoint, message)
            return

        normalized: List[Article] = []
        for item in items:
            try:
                article = normalizer(item, source)
                article.published_at = normalize_published_at(article.published_at)
                if cutoff and article.published_at and date_parser.parse(article.published_at) < cutoff:
                    continue
            except Exception as e:
                self._drop_record(source, result, e)
                continue
            normalized.append(article)

        if not skip_translation and target_language and normalized:
            await self._translate_titles(source, normalized, target_language)

        seen: Set[str] = set()
        kept = 0
        for article in normalized:
            if isinstance(article.url, str) and article.url:
                if article.url in seen:
                    continue
                seen.add(article.url)
            try:
                self.validator.validate(clean_article_for_db(article))
            except Exception as e:
                self._drop_record(source, result, e)
                continue
            result.articles.append(article)
            kept += 1

        logger.info(f"Fetched {kept} articles from {source.endpoint}")

    @staticmethod
    def _drop_record(source: Source, result: FetchResult, error: Exception) -> None:
        detail = error.message if isinstance(error, ValidationError) else str(error)
        message = f"Invalid article structure from {source.endpoint}: {detail}"
        logger.warning(message)
        result.add_error(source.endpoint, message)

    async def _translate_titles(self, source: Source, articles: List[Article], target_language: str) -> None:
        if self.adapter is None:
            logger.warning(f"No enrichment adapter, titles from {source.endpoint} stay untranslated")
            return
        try:
            titles = await self.adapter.translate_titles([a.title or "" for a in articles], target_language)
        except Exception as e:
            logger.warning(f"Failed to translate titles for articles from {source.endpoint}: {e}")
            return
        for article, title in zip(articles, titles):
            if title:
                article.title = title

    async def ingest(self, sources: Iterable[Source], target_language: Optional[str],
                     since: Optional[datetime] = None, skip_translation: bool = True) -> FetchResult:
        """
        ``fetch_all`` followed by a duplicate-safe insert into the Local store.

        Reports only through the audit log; meant to run as a background task.

        Raises:
            MissingCollaboratorError: If no Local store was provided
        """
        if self.local_store is None:
            raise MissingCollaboratorError('SourceFetchOrchestrator.ingest', 'local_store')

        result = await self.fetch_all(sources, target_language, since, skip_translation)
        added = await self.local_store.add_unique(result.articles)

        if self.audit is not None:
            for error in result.errors:
                await self.audit.add(f"Source fetch failed: {error['endpoint']}", "warn", error)
            await self.audit.add(
                "Background fetch completed", "info",
                {'fetched': len(result.articles), 'added': added, 'errors': len(result.errors)}
            )
        return result


class BackgroundTasks:
    """
    Fire-and-forget tasks whose failures go to the audit log.

    Tasks are referenced until they finish so they are not garbage
    collected mid-flight.
    """

    def __init__(self, audit=None):
        self.audit = audit
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Awaitable, name: str = "background") -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._on_done(t, name))
        return task

    def _on_done(self, task: asyncio.Task, name: str) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.info(f"Background task {name} cancelled")
            return
        error = task.exception()
        if error is None:
            logger.debug(f"Background task {name} finished")
            return
        logger.error(f"Background task {name} failed: {error}")
        if self.audit is not None:
            self.spawn(self.audit.add(f"Background task {name} failed: {error}", "error"), name=f"{name}-audit")

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def wait_all(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
