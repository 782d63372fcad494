#!/usr/bin/env python3
"""
Core data models for the news node.

Contains all data structures used throughout the application.
"""

from .article import (
    Article, ArticleAnalyzed, StoredArticle, SourceMeta, CognitiveBias,
    article_from_dict, utc_now_iso, EDITIONS, POLITICAL_BIAS_VALUES, SOURCE_TYPES,
)
from .analysis import NormalizedContent, AnalysisResult
from .pointer import FederatedArticlePointer
from .source import Source, load_sources
from .log import DebugLogEntry

__all__ = [
    'Article', 'ArticleAnalyzed', 'StoredArticle', 'SourceMeta', 'CognitiveBias',
    'article_from_dict', 'utc_now_iso', 'EDITIONS', 'POLITICAL_BIAS_VALUES', 'SOURCE_TYPES',
    'NormalizedContent', 'AnalysisResult', 'FederatedArticlePointer',
    'Source', 'load_sources', 'DebugLogEntry',
]
