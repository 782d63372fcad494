#!/usr/bin/env python3
"""
Site-specific article extractors.

Each extractor takes the raw HTML of an article page and returns its
main text as a plain string, or ``""`` when the page does not have the
expected structure.
"""

import json
import logging

from bs4 import BeautifulSoup

from core.analysis.text import strip_boilerplate, clean_html, collapse_whitespace

logger = logging.getLogger(__name__)

GENERIC_SELECTORS = [
    "article",
    "main",
    ".post-content",
    ".entry-content",
    ".article-body",
    ".story-body",
    "[itemprop='articleBody']",
]


def _join_text(nodes) -> str:
    return "\n\n".join(n.get_text(strip=True) for n in nodes if n.get_text(strip=True))


def parse_nytimes(raw_html: str) -> str:
    soup = BeautifulSoup(raw_html, 'html.parser')
    section = soup.select_one("section[name='articleBody']")
    if section is None:
        return ""
    return _join_text(section.find_all('p'))


def parse_theverge(raw_html: str) -> str:
    soup = BeautifulSoup(raw_html, 'html.parser')
    container = soup.select_one("div.c-entry-content") or soup.find('article')
    if container is None:
        return ""
    return _join_text(container.select("p, h2, h3"))


def parse_bbc(raw_html: str) -> str:
    soup = BeautifulSoup(raw_html, 'html.parser')
    nodes = soup.select("article p, article h2, article h3")
    if not nodes:
        nodes = soup.select("div[data-component='text-block']")
    return _join_text(nodes)


def parse_washingtonpost(raw_html: str) -> str:
    article = BeautifulSoup(raw_html, 'html.parser').find('article')
    return article.get_text(' ', strip=True) if article else ""


def extract_with_trafilatura(raw_html: str) -> str:
    """Main-text extraction with trafilatura; empty string on failure."""
    try:
        import trafilatura

        result = trafilatura.extract(
            raw_html,
            output_format='json',
            include_comments=False,
            include_tables=True
        )
        if result:
            return (json.loads(result).get('text') or '').strip()
    except Exception as e:
        logger.debug(f"Trafilatura extraction failed: {e}")
    return ""


def parse_generic(raw_html: str) -> str:
    """
    Extractor for any site.

    Cleans the page, tries the usual article containers in order, then
    trafilatura, then the whole cleaned body.
    """
    if not raw_html:
        return ""
    soup = strip_boilerplate(BeautifulSoup(raw_html, 'html.parser'))

    for selector in GENERIC_SELECTORS:
        node = soup.select_one(selector)
        if node is not None:
            text = collapse_whitespace(node.get_text(' '))
            if text:
                return text

    return extract_with_trafilatura(raw_html) or clean_html(str(soup))
