"""
Content fetching module.
"""

from .fetcher import ContentFetcher

__all__ = ['ContentFetcher']
