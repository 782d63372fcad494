#!/usr/bin/env python3
"""
Article schema validation.

Checks normalized records before they enter the Local store. A record
that fails is dropped on its own; the rest of its batch continues.
"""

import re
import urllib.parse
import logging

from core.exceptions import ValidationError
from core.models import Article, EDITIONS, SOURCE_TYPES

logger = logging.getLogger(__name__)


class ArticleValidator:
    """Validates articles against the stored-article schema."""

    # Maximum allowed lengths to prevent oversized records
    MAX_TITLE_LENGTH = 500
    MAX_URL_LENGTH = 2048

    # Allowed URL schemes
    ALLOWED_SCHEMES = {'http', 'https'}

    # Patterns for detecting potentially malicious URLs
    SUSPICIOUS_PATTERNS = [
        r'javascript:',
        r'data:',
        r'vbscript:',
    ]

    def __init__(self):
        self.suspicious_regex = re.compile('|'.join(self.SUSPICIOUS_PATTERNS), re.IGNORECASE)

    def is_valid_url(self, url: str) -> bool:
        """
        Validate that a URL is an absolute http(s) URL.

        Returns:
            True if URL is valid and safe, False otherwise
        """
        if not isinstance(url, str) or not url or len(url) > self.MAX_URL_LENGTH or self.suspicious_regex.match(url):
            return False
        try:
            parsed = urllib.parse.urlparse(url)
        except ValueError as e:
            logger.debug(f"Error parsing URL {url}: {e}")
            return False
        return parsed.scheme.lower() in self.ALLOWED_SCHEMES and bool(parsed.netloc)

    def validate(self, article: Article) -> Article:
        """
        Validate one article.

        Returns:
            The same article

        Raises:
            ValidationError: On the first field that does not match the schema
        """
        if not isinstance(article.id, str) or not article.id:
            raise ValidationError('id', article.id, 'non-empty string')
        if not self.is_valid_url(article.url):
            raise ValidationError('url', article.url, 'absolute http(s) URL')
        if not isinstance(article.title, str) or not article.title:
            raise ValidationError('title', article.title, 'non-empty string')
        if len(article.title) > self.MAX_TITLE_LENGTH:
            raise ValidationError('title', article.title, f'at most {self.MAX_TITLE_LENGTH} characters')
        if article.edition not in EDITIONS:
            raise ValidationError('edition', article.edition, 'known edition')
        if article.source_type is not None and article.source_type not in SOURCE_TYPES:
            raise ValidationError('source_type', article.source_type, 'known source type')
        confidence = article.confidence
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)) or not 0.0 <= confidence <= 1.0:
            raise ValidationError('confidence', article.confidence, 'number between 0 and 1')
        if not isinstance(article.tags, list) or not all(isinstance(t, str) for t in article.tags):
            raise ValidationError('tags', article.tags, 'list of strings')
        if not isinstance(article.categories, list) or not all(isinstance(c, str) for c in article.categories):
            raise ValidationError('categories', article.categories, 'list of strings')
        if article.image and not self.is_valid_url(article.image):
            raise ValidationError('image', article.image, 'absolute http(s) URL')
        return article
