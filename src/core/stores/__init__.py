"""
Article stores built on the replicated document collections.
"""

from .base import ArticleStore, strip_trailing_slash
from .local import LocalArticleStore
from .analyzed import AnalyzedArticleStore
from .federated import FederatedPointerStore
from .debug import DebugLogStore

__all__ = [
    'ArticleStore', 'strip_trailing_slash', 'LocalArticleStore',
    'AnalyzedArticleStore', 'FederatedPointerStore', 'DebugLogStore',
]
