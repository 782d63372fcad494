#!/usr/bin/env python3
"""
Normalizers from parsed feed items to ``Article`` records, plus the
batch helpers applied before validation.
"""

import json
import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import pytz
from dateutil import parser as date_parser

from core.models import Article, Source, SourceMeta, EDITIONS
from core.models.article import utc_now_iso

logger = logging.getLogger(__name__)

Normalizer = Callable[[Dict[str, Any], Source], Article]


def normalize_published_at(value: Any) -> Optional[str]:
    """
    Convert a feed date to an ISO-8601 UTC string.

    Naive dates are taken as UTC. Returns None for missing or unparsable
    values.
    """
    if not value:
        return None
    try:
        dt = value if isinstance(value, datetime) else date_parser.parse(str(value))
    except (ValueError, OverflowError) as e:
        logger.debug(f"Failed to parse date '{value}': {e}")
        return None
    if dt.tzinfo is None:
        dt = pytz.utc.localize(dt)
    return dt.astimezone(pytz.utc).isoformat()


def _source_meta(item: Dict[str, Any], default_name: str, default_bias: str) -> SourceMeta:
    meta = SourceMeta.from_dict(item.get('source_meta'))
    return meta or SourceMeta(name=default_name, bias=default_bias)


def normalize_json(item: Dict[str, Any], source: Source) -> Article:
    edition = item.get('edition')
    return Article(
        id=item.get('id') or item.get('url') or str(uuid.uuid4()),
        title=item.get('title') or 'Untitled',
        url=item.get('url') or '',
        content=item.get('content') or '',
        summary=item.get('summary') or '',
        image=item.get('image'),
        categories=item.get('categories') or [],
        tags=item.get('tags') or [],
        language=item.get('language'),
        author=item.get('author'),
        published_at=item.get('published_at'),
        edition=edition if edition in EDITIONS else 'other',
        raw=item.get('raw'),
        source_meta=_source_meta(item, source.name, source.bias or 'center'),
        fetched_at=item.get('fetched_at') or utc_now_iso(),
        source=item.get('source') or source.name,
        source_domain=item.get('source_domain'),
        source_type=item.get('source_type') or 'json',
        mobile_url=item.get('mobile_url'),
        source_country=item.get('source_country'),
        confidence=item.get('confidence', 0.8),
    )


def normalize_rss(item: Dict[str, Any], source: Source) -> Article:
    article = normalize_json(item, source)
    article.source_type = 'rss'
    return article


def normalize_gdelt(item: Dict[str, Any], source: Source) -> Article:
    return Article(
        id=item.get('id') or str(uuid.uuid4()),
        url=item.get('url') or '',
        title=item.get('title') or 'Untitled',
        source=item.get('source') or item.get('author'),
        source_domain=item.get('source_domain') or item.get('author'),
        source_type='gdelt',
        image=item.get('image'),
        mobile_url=item.get('mobile_url'),
        source_country=item.get('source_country'),
        language=item.get('language'),
        published_at=item.get('published_at'),
        summary=item.get('summary') or '',
        content=item.get('content') or '',
        categories=item.get('categories') or [],
        tags=item.get('tags') or [],
        edition=item.get('edition') or 'international',
        confidence=item.get('confidence', 0.8),
        raw=item.get('raw'),
        source_meta=_source_meta(item, item.get('source') or 'GDELT', 'center'),
        fetched_at=item.get('fetched_at') or utc_now_iso(),
    )


def normalize_hn(item: Dict[str, Any], source: Source) -> Article:
    article = normalize_json(item, source)
    article.source_type = 'hn'
    article.edition = 'international'
    return article


NORMALIZERS: Dict[str, Normalizer] = {
    'json': normalize_json,
    'rss': normalize_rss,
    'gdelt': normalize_gdelt,
    'hn': normalize_hn,
}


def get_normalizer(name: str) -> Normalizer:
    normalizer = NORMALIZERS.get((name or 'json').lower())
    if normalizer is None:
        logger.warning(f"Unknown normalizer '{name}', using json")
        return normalize_json
    return normalizer


def _json_safe(value: Any) -> Any:
    try:
        json.dumps(value)
        return value
    except (TypeError, ValueError):
        return str(value)


def clean_article_for_db(article: Article) -> Article:
    """Trim the title and make ``raw`` JSON-serializable."""
    if isinstance(article.title, str):
        article.title = article.title.strip()
    elif article.title is None:
        article.title = ''
    article.raw = _json_safe(article.raw)
    return article


def clean_articles_for_db(articles: List[Article]) -> List[Article]:
    """
    Prepare a batch for storage.

    Drops repeated URLs within the batch (first wins), trims titles and
    makes ``raw`` JSON-serializable.
    """
    seen = set()
    cleaned = []
    for article in articles:
        if article.url and article.url in seen:
            continue
        seen.add(article.url)
        cleaned.append(clean_article_for_db(article))
    return cleaned
