"""
News sources: feed parsers, normalizers and the hostname parser registry.
"""

from .feeds import FEED_PARSERS, get_feed_parser
from .normalizers import NORMALIZERS, get_normalizer, normalize_published_at, clean_articles_for_db, clean_article_for_db
from .registry import ParserRegistry, create_default_registry

__all__ = [
    'FEED_PARSERS', 'get_feed_parser', 'NORMALIZERS', 'get_normalizer',
    'normalize_published_at', 'clean_articles_for_db', 'clean_article_for_db',
    'ParserRegistry', 'create_default_registry',
]
