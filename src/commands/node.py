#!/usr/bin/env python3
"""
Node command endpoints: run a node and inspect a running one.
"""

import asyncio
import json
import logging
import signal
from argparse import Namespace

from core.status import StatusStore

from .base import BaseCommand, NodeRequestError

logger = logging.getLogger(__name__)


class NodeCommand(BaseCommand):
    """Start the node or show its status."""

    def execute(self, subcommand: str, args: Namespace) -> int:
        """Execute node subcommand."""
        try:
            if subcommand == "start":
                return self.start(args)
            elif subcommand == "status":
                return self.status(args)
            else:
                available = ", ".join(self.get_available_subcommands())
                self.logger.error(f"Unknown subcommand '{subcommand}'. Available: {available}")
                return 1

        except Exception as e:
            return self.handle_error(e, f"node {subcommand}")

    def start(self, args: Namespace) -> int:
        """Run the node until SIGINT/SIGTERM."""
        data_dir = self.config.storage.data_dir
        if getattr(args, 'init', False) and not data_dir.exists():
            data_dir.mkdir(parents=True)
            print(f"📁 Created data directory {data_dir}")

        if getattr(args, 'port', None):
            self.config.network.http_port = args.port

        return asyncio.run(self._run())

    async def _run(self) -> int:
        stopped = asyncio.Event()
        node = self.create_node()
        node.terminate = stopped.set

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, lambda: asyncio.ensure_future(node.shutdown()))
            except NotImplementedError:
                self.logger.warning(f"Signal handler for {sig.name} not supported on this platform")

        try:
            await node.start()
            print(f"🚀 Node running on port {self.config.network.http_port} "
                  f"({len(node.sources)} sources, {len(node.network.peers)} peers)")
            await stopped.wait()
        finally:
            await node.fetcher.close()

        print("👋 Node stopped")
        return 0

    def status(self, args: Namespace) -> int:
        """Ask the running node for its status, falling back to the status file."""
        port = getattr(args, 'port', None)
        try:
            status = self.request_node('GET', '/status', port=port)
            origin = "live"
        except NodeRequestError as e:
            self.logger.debug(f"Live status unavailable: {e}")
            status = StatusStore(self.config.storage.status_file).load()
            origin = "status file"

        if getattr(args, 'json', False):
            print(json.dumps(status, indent=2))
            return 0

        print(f"📊 Node status ({origin}):")
        print(f"   • Running: {'✅' if status.get('running') else '❌'}")
        print(f"   • Connected to peers: {'✅' if status.get('connected') else '❌'}")
        print(f"   • Syncing: {'yes' if status.get('syncing') else 'no'}")
        print(f"   • Last sync: {status.get('last_sync') or 'never'}")
        print(f"   • Port: {status.get('port')}")
        for peer in status.get('peers') or []:
            mark = '✅' if peer.get('connected') else '❌'
            print(f"   {mark} {peer.get('url')}")
        return 0 if status.get('running') else 1
