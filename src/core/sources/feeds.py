#!/usr/bin/env python3
"""
Feed parsers.

A feed parser turns the raw response body of a source endpoint into a
list of partial article dictionaries (snake_case keys). Normalizers then
turn each of them into an ``Article``.
"""

import json
import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List

import feedparser
import pytz

from core.exceptions import SourceParseError
from core.models import Source, POLITICAL_BIAS_VALUES

logger = logging.getLogger(__name__)

FeedParser = Callable[[str, Source], List[Dict[str, Any]]]

_COUNTRY_EDITIONS = {
    'united states': 'us', 'united kingdom': 'uk', 'canada': 'ca', 'australia': 'au',
    'germany': 'de', 'france': 'fr', 'spain': 'es', 'italy': 'it', 'japan': 'jp',
    'south korea': 'kr', 'china': 'cn', 'india': 'in', 'brazil': 'br', 'russia': 'ru',
    'mexico': 'mx', 'saudi arabia': 'sa', 'united arab emirates': 'ae', 'nigeria': 'ng',
    'south africa': 'za',
}


def map_country_to_edition(country: Any) -> str:
    return _COUNTRY_EDITIONS.get(str(country or '').strip().lower(), 'international')


def _load_json(raw: str, source: Source) -> Any:
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as e:
        raise SourceParseError(source.name, 'json', e)


def parse_json(raw: str, source: Source) -> List[Dict[str, Any]]:
    """Generic JSON API: ``{"articles": [{title, url, content?, description?, ...}]}``."""
    data = _load_json(raw, source)
    if not isinstance(data, dict) or not isinstance(data.get('articles'), list):
        return []

    items = []
    for a in data['articles']:
        if not isinstance(a, dict):
            logger.warning(f"Skipping non-object article entry from {source.endpoint}")
            continue
        bias = a.get('bias')
        item = {
            'id': str(uuid.uuid4()),
            'title': a.get('title') or 'Untitled',
            'url': a.get('url') or '',
            'content': a.get('content') or a.get('summary'),
            'summary': a.get('summary') or a.get('description'),
            'image': a.get('imageUrl') or a.get('urlToImage'),
            'categories': a.get('categories') or [],
            'tags': a.get('tags') or [],
            'language': a.get('language'),
            'author': a.get('author'),
            'published_at': a.get('publishedAt') or a.get('published_date'),
            'edition': a.get('edition'),
            'raw': a,
            'source_meta': {
                'name': source.name,
                'bias': bias if bias in POLITICAL_BIAS_VALUES else 'center',
            },
        }
        if 'confidence' in a:
            item['confidence'] = a['confidence']
        items.append(item)
    return items


def _struct_time_iso(entry) -> Any:
    parsed = entry.get('published_parsed') or entry.get('updated_parsed')
    if not parsed:
        return entry.get('published') or entry.get('updated')
    return pytz.utc.localize(datetime(*parsed[:6])).isoformat()


def parse_rss(raw: str, source: Source) -> List[Dict[str, Any]]:
    """RSS or Atom feed parsed with feedparser."""
    feed = feedparser.parse(raw)
    if feed.bozo and not feed.entries:
        raise SourceParseError(source.name, 'rss', feed.bozo_exception)
    if feed.bozo:
        logger.warning(f"Feed parsing warning for {source.endpoint}: {feed.bozo_exception}")

    items = []
    for entry in feed.entries:
        link = entry.get('link') or entry.get('id') or ''
        content_blocks = entry.get('content') or []
        content = content_blocks[0].get('value') if content_blocks else entry.get('description')
        items.append({
            'id': link or entry.get('id'),
            'title': entry.get('title') or 'Untitled',
            'url': link,
            'content': content,
            'summary': entry.get('summary') or entry.get('description'),
            'categories': [t.get('term') for t in entry.get('tags', []) if t.get('term')],
            'language': feed.feed.get('language'),
            'author': entry.get('author'),
            'published_at': _struct_time_iso(entry),
            'raw': {k: entry.get(k) for k in ('id', 'link', 'title', 'published', 'summary')},
            'source_meta': {'name': source.name, 'bias': source.bias or 'center'},
            'source_type': 'rss',
        })
    return items


def parse_gdelt(raw: str, source: Source) -> List[Dict[str, Any]]:
    """GDELT DOC 2.0 API article list."""
    data = _load_json(raw, source)
    if not isinstance(data, dict) or not isinstance(data.get('articles'), list):
        return []

    items = []
    for a in data['articles']:
        summary = a.get('summary') or 'No summary'
        items.append({
            'id': str(uuid.uuid4()),
            'title': a.get('title') or 'Untitled',
            'url': a.get('url'),
            'mobile_url': a.get('url_mobile') or None,
            'content': a.get('content') or a.get('summary') or 'No content available',
            'summary': summary,
            'language': a.get('language'),
            'author': a.get('domain') or source.name,
            'source_domain': a.get('domain'),
            'source_country': a.get('sourcecountry'),
            'published_at': a.get('seendate'),
            'edition': map_country_to_edition(a.get('sourcecountry')),
            'image': a.get('socialimage') or None,
            'raw': a,
            'source_meta': {'name': source.name, 'bias': 'center'},
        })
    return items


def parse_hn(raw: str, source: Source) -> List[Dict[str, Any]]:
    """Hacker News search API (``{"hits": [...]}``)."""
    data = _load_json(raw, source)
    hits = data.get('hits') if isinstance(data, dict) else None
    if not isinstance(hits, list):
        return []

    items = []
    for hit in hits:
        object_id = hit.get('objectID')
        url = hit.get('url') or (f"https://news.ycombinator.com/item?id={object_id}" if object_id else '')
        items.append({
            'id': f"hn-{object_id}" if object_id else str(uuid.uuid4()),
            'title': hit.get('title') or hit.get('story_title') or 'Untitled',
            'url': url,
            'content': hit.get('story_text'),
            'author': hit.get('author'),
            'published_at': hit.get('created_at'),
            'tags': [t for t in hit.get('_tags', []) if not t.startswith(('author_', 'story_'))],
            'raw': hit,
            'source_meta': {'name': source.name, 'bias': source.bias or 'center'},
            'source_type': 'hn',
        })
    return items


FEED_PARSERS: Dict[str, FeedParser] = {
    'json': parse_json,
    'rss': parse_rss,
    'gdelt': parse_gdelt,
    'hn': parse_hn,
}


def get_feed_parser(name: str) -> FeedParser:
    """Parser registered under ``name``; unknown names use the JSON parser."""
    parser = FEED_PARSERS.get((name or 'json').lower())
    if parser is None:
        logger.warning(f"Unknown feed parser '{name}', using json")
        return parse_json
    return parser
