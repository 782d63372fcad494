#!/usr/bin/env python3
"""
Articles command endpoints: list and resolve articles on the running node.
"""

import json
import logging
from argparse import Namespace
from typing import Any, Dict, List

from .base import BaseCommand

logger = logging.getLogger(__name__)

STORE_PATHS = {
    'local': '/articles/local',
    'analyzed': '/articles/analyzed',
    'federated': '/articles/federated',
}


class ArticlesCommand(BaseCommand):
    """List and resolve articles through the node's HTTP API."""

    def execute(self, subcommand: str, args: Namespace) -> int:
        """Execute articles subcommand."""
        try:
            if subcommand == "list":
                return self.list(args)
            elif subcommand == "resolve":
                return self.resolve(args)
            else:
                available = ", ".join(self.get_available_subcommands())
                self.logger.error(f"Unknown subcommand '{subcommand}'. Available: {available}")
                return 1

        except Exception as e:
            return self.handle_error(e, f"articles {subcommand}")

    def list(self, args: Namespace) -> int:
        store = getattr(args, 'store', 'local')
        items: List[Dict[str, Any]] = self.request_node('GET', STORE_PATHS[store], port=getattr(args, 'port', None))
        limit = getattr(args, 'limit', None)
        if limit:
            items = items[:limit]

        if getattr(args, 'json', False):
            print(json.dumps(items, indent=2, ensure_ascii=False))
            return 0

        print(f"📰 {len(items)} {store} entries:")
        for item in items:
            if store == 'federated':
                print(f"• {item['cid']} analyzed={item['analyzed']} {item.get('source') or ''}")
                continue
            marker = '🧠' if item.get('analyzed') else '📄'
            print(f"{marker} {item.get('title') or '(untitled)'}")
            print(f"   {item.get('url')}")
        return 0

    def resolve(self, args: Namespace) -> int:
        """Resolve one article by URL, id or content identifier."""
        if not self.validate_args(args, ['identifier']):
            return 1
        article = self.request_node(
            'POST', '/articles/local/full', port=getattr(args, 'port', None), json={'id': args.identifier}
        )

        if getattr(args, 'json', False):
            print(json.dumps(article, indent=2, ensure_ascii=False))
            return 0

        print(f"\n=== {article.get('title') or article.get('url')} ===")
        print(f"Analyzed: {'✅' if article.get('analyzed') else '❌'}")
        if article.get('ipfs_hash'):
            print(f"CID: {article['ipfs_hash']}")
        if article.get('summary'):
            print(f"\n{article['summary']}")
        if article.get('tags'):
            print(f"\nTags: {', '.join(article['tags'])}")
        if article.get('analyzed'):
            print(f"\nPolitical bias: {article.get('political_bias')}")
            print(f"Sentiment: {article.get('sentiment')}")
            for bias in article.get('cognitive_biases') or []:
                print(f"   • {bias.get('bias')} ({bias.get('severity')}): {bias.get('explanation')}")
        return 0
