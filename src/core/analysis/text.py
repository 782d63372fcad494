#!/usr/bin/env python3
"""
Pure-text helpers used by the enrichment chain and its fallbacks.

Nothing here performs I/O, so these functions can back any step whose
model-based version fails.
"""

import re
from typing import Optional

from bs4 import BeautifulSoup

_SENTENCE_SPLIT = re.compile(r'(?<=[.!?])\s+')
_WHITESPACE = re.compile(r'\s+')

# Elements and overlays that never carry article text
_STRIP_SELECTORS = [
    "script", "style", "noscript",
    "header", "footer", "nav", "aside",
    "[hidden]", "[style*='display:none']",
    ".paywall", ".overlay", ".meteredContent", "#gateway-content",
]


def collapse_whitespace(text: Optional[str]) -> str:
    return _WHITESPACE.sub(' ', text or '').strip()


def strip_boilerplate(soup: BeautifulSoup) -> BeautifulSoup:
    """Remove non-content elements from ``soup`` in place."""
    for selector in _STRIP_SELECTORS:
        for element in soup.select(selector):
            element.decompose()
    return soup


def clean_html(html: Optional[str]) -> str:
    """
    Reduce an HTML page to its visible text.

    Scripts, navigation, hidden elements and paywall overlays are dropped
    and whitespace is collapsed. Plain text passes through unchanged apart
    from whitespace.
    """
    if not html:
        return ""
    soup = strip_boilerplate(BeautifulSoup(html, 'html.parser'))
    root = soup.body or soup
    return collapse_whitespace(root.get_text(' '))


def naive_summary(text: Optional[str], sentences: int = 3) -> str:
    """First ``sentences`` sentences of ``text``."""
    if not text:
        return ""
    parts = [p for p in _SENTENCE_SPLIT.split(text.strip()) if p]
    return ' '.join(parts[:sentences])


def truncate_text(text: Optional[str], max_chars: int) -> str:
    """Bound model input length; cuts on a word boundary when possible."""
    text = text or ""
    if len(text) <= max_chars:
        return text
    cut = text[:max_chars]
    space = cut.rfind(' ')
    return cut[:space] if space > max_chars // 2 else cut
