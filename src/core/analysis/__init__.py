#!/usr/bin/env python3
"""
Article enrichment: the adapter boundary, text fallbacks, prompts and
output schemas.
"""

from .adapter import EnrichmentAdapter
from .text import clean_html, naive_summary, truncate_text

__all__ = ['EnrichmentAdapter', 'clean_html', 'naive_summary', 'truncate_text']
