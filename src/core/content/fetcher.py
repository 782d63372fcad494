"""
Async content fetcher for source endpoints and article pages.

One aiohttp session per fetcher, a hard timeout on every request and a
rotating browser User-Agent. Non-success statuses are errors.
"""

import asyncio
import itertools
import logging
from typing import Optional

import aiohttp

from core.exceptions import SourceConnectionError, SourceTimeoutError

logger = logging.getLogger(__name__)

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_4) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.4 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64; rv:125.0) Gecko/20100101 Firefox/125.0",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) Gecko/20100101 Firefox/125.0",
]


class ContentFetcher:
    """Fetches raw payloads with a bounded timeout."""

    def __init__(self, timeout: float = 10.0, session: Optional[aiohttp.ClientSession] = None):
        """
        Initialize content fetcher.

        Args:
            timeout: Total request timeout in seconds
            session: Existing session to share; created lazily otherwise
        """
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None
        self._user_agents = itertools.cycle(USER_AGENTS)
        self.calls = 0

    async def __aenter__(self):
        """Async context manager entry."""
        self._get_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))
            self._owns_session = True
        return self._session

    async def fetch(self, url: str) -> str:
        """
        Fetch ``url`` and return the response body as text.

        Raises:
            SourceTimeoutError: If the request exceeds the timeout
            SourceConnectionError: On connection failure or non-success status
        """
        session = self._get_session()
        self.calls += 1
        headers = {
            'User-Agent': next(self._user_agents),
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,application/json;q=0.9,*/*;q=0.8',
            'Accept-Language': 'en-US,en;q=0.9',
        }
        logger.debug(f"Fetching {url}")
        try:
            async with session.get(url, headers=headers, timeout=aiohttp.ClientTimeout(total=self.timeout)) as response:
                if response.status >= 400:
                    raise SourceConnectionError(url, RuntimeError(f"HTTP {response.status}"))
                text = await response.text(errors='replace')
        except asyncio.TimeoutError:
            logger.warning(f"Timeout fetching {url}")
            raise SourceTimeoutError(url, self.timeout)
        except aiohttp.ClientError as e:
            logger.warning(f"HTTP error fetching {url}: {e}")
            raise SourceConnectionError(url, e)
        except ValueError as e:
            # aiohttp rejects malformed URLs with ValueError subclasses
            raise SourceConnectionError(url, e)

        logger.debug(f"Successfully fetched {url} ({len(text)} chars)")
        return text

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None
