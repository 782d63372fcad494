#!/usr/bin/env python3
"""
Hostname parser registry.

Maps article hostnames to the extractor that understands their markup.
Unknown hosts and unparsable URLs get the generic extractor.
"""

import logging
from typing import Callable, Dict, List, Optional
from urllib.parse import urlparse

from . import sites

logger = logging.getLogger(__name__)

ArticleParser = Callable[[str], str]


class ParserRegistry:
    """Registry of site extractors keyed by hostname."""

    def __init__(self, fallback: ArticleParser = sites.parse_generic):
        """Initialize empty registry."""
        self._parsers: Dict[str, ArticleParser] = {}
        self._fallback = fallback

    def register(self, hostname: str, parser: ArticleParser, with_www_alias: bool = True) -> None:
        """
        Register an extractor for a hostname.

        Args:
            hostname: Bare hostname such as ``bbc.com``
            parser: Function from raw HTML to article text
            with_www_alias: Also register ``www.<hostname>``
        """
        hostname = hostname.lower()
        self._parsers[hostname] = parser
        if with_www_alias and not hostname.startswith('www.'):
            self._parsers[f"www.{hostname}"] = parser
        logger.debug(f"Registered parser for {hostname}")

    def lookup(self, hostname_or_url: Optional[str]) -> ArticleParser:
        """
        Return the extractor for a hostname or a full URL.

        Falls back to the generic extractor when nothing is registered or
        the value cannot be parsed.
        """
        if not hostname_or_url:
            return self._fallback
        try:
            if '://' in hostname_or_url:
                hostname = urlparse(hostname_or_url).hostname
            else:
                hostname = hostname_or_url
        except ValueError:
            return self._fallback
        if not hostname:
            return self._fallback
        return self._parsers.get(hostname.lower(), self._fallback)

    def list_hostnames(self) -> List[str]:
        return sorted(self._parsers)


def create_default_registry() -> ParserRegistry:
    registry = ParserRegistry()
    registry.register('nytimes.com', sites.parse_nytimes)
    registry.register('theverge.com', sites.parse_theverge)
    registry.register('bbc.com', sites.parse_bbc)
    registry.register('washingtonpost.com', sites.parse_washingtonpost)
    return registry
