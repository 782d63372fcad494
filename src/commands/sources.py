#!/usr/bin/env python3
"""
Sources command endpoints: fetch configured sources.
"""

import asyncio
import json
import logging
from argparse import Namespace
from datetime import datetime, timedelta

import pytz

from core.orchestrator import FetchResult, SourceFetchOrchestrator

from .base import BaseCommand

logger = logging.getLogger(__name__)


class SourcesCommand(BaseCommand):
    """Fetch articles from the configured sources."""

    def execute(self, subcommand: str, args: Namespace) -> int:
        """Execute sources subcommand."""
        try:
            if subcommand == "fetch":
                return self.fetch(args)
            elif subcommand == "list":
                return self.list(args)
            else:
                available = ", ".join(self.get_available_subcommands())
                self.logger.error(f"Unknown subcommand '{subcommand}'. Available: {available}")
                return 1

        except Exception as e:
            return self.handle_error(e, f"sources {subcommand}")

    def fetch(self, args: Namespace) -> int:
        """
        Fetch every enabled source.

        With ``--remote`` the running node ingests in the background;
        otherwise the batch runs here and is printed without being stored.
        """
        hours = getattr(args, 'hours', None)
        since = datetime.now(pytz.utc) - timedelta(hours=hours) if hours else None
        skip_translation = not getattr(args, 'translate', False)
        target_language = getattr(args, 'language', None) or self.config.app.target_language

        if getattr(args, 'remote', False):
            body = {
                'target_language': target_language,
                'since': since.isoformat() if since else None,
                'skip_translation': skip_translation,
            }
            self.request_node('POST', '/articles/local/fetch', json=body)
            print("✅ Fetch accepted by running node; results go to its debug log")
            return 0

        result = asyncio.run(self._fetch(target_language, since, skip_translation))

        if getattr(args, 'json', False):
            print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False, default=str))
        else:
            print(f"\n=== Fetched {len(result.articles)} articles ===")
            for article in result.articles:
                print(f"• [{article.edition}] {article.title}")
                print(f"  {article.url}")
            if result.errors:
                print(f"\n⚠️  {len(result.errors)} errors:")
                for error in result.errors:
                    print(f"   • {error['endpoint']}: {error['error']}")

        return 0 if not result.errors else 1

    async def _fetch(self, target_language, since, skip_translation) -> FetchResult:
        async with self.create_fetcher() as fetcher:
            orchestrator = SourceFetchOrchestrator(
                fetcher, adapter=self.enrichment_adapter, validator=self.validator,
            )
            return await orchestrator.fetch_all(self.sources, target_language, since, skip_translation)

    def list(self, args: Namespace) -> int:
        """Show the configured sources."""
        sources = self.sources
        if not sources:
            print(f"No sources configured ({self.config.storage.sources_file})")
            return 1
        print(f"📰 {len(sources)} sources:")
        for source in sources:
            mark = '✅' if source.enabled else '⏸️ '
            print(f"   {mark} {source.name} [{source.parser}/{source.normalizer}] {source.endpoint}")
        hostnames = [h for h in self.parser_registry.list_hostnames() if not h.startswith('www.')]
        print(f"\n🔎 Site extractors: {', '.join(hostnames)} (others use the generic extractor)")
        return 0
