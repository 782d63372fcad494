#!/usr/bin/env python3
"""
CLI Router for the news node.

Modular command architecture: one command class per top-level command.
"""

import argparse
import logging
import sys
from typing import Optional, List

from commands import get_command, COMMANDS

logger = logging.getLogger(__name__)


class CLIRouter:
    """
    CLI router for news node commands.

    Command structure:
    - python run.py node start --init
    - python run.py node status
    - python run.py sources fetch --hours 6
    - python run.py articles resolve https://example.com/story
    - python run.py maintenance clean-locks
    """

    def __init__(self):
        """Initialize CLI router."""
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create the main argument parser."""
        parser = argparse.ArgumentParser(
            description="P2P news node: ingestion, enrichment and federated sharing",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog=self._get_examples_text()
        )

        subparsers = parser.add_subparsers(
            dest='command',
            help='Available commands',
            metavar='{command}'
        )

        self._add_node_parser(subparsers)
        self._add_sources_parser(subparsers)
        self._add_articles_parser(subparsers)
        self._add_maintenance_parser(subparsers)

        return parser

    def _add_node_parser(self, subparsers):
        """Add node command parser."""
        node_parser = subparsers.add_parser('node', help='Run the node or inspect a running one')

        node_subparsers = node_parser.add_subparsers(
            dest='subcommand',
            help='Node operations',
            metavar='{start,status}'
        )

        start_parser = node_subparsers.add_parser('start', help='Start the node and serve until interrupted')
        start_parser.add_argument('--init', action='store_true', help='Create the data directory if it is missing')
        start_parser.add_argument('--port', type=int, default=None, help='HTTP port (default: HTTP_PORT or 9001)')

        status_parser = node_subparsers.add_parser('status', help='Show node status')
        status_parser.add_argument('--port', type=int, default=None, help='HTTP port of the running node')
        status_parser.add_argument('--json', action='store_true', help='Print raw JSON')

    def _add_sources_parser(self, subparsers):
        """Add sources command parser."""
        sources_parser = subparsers.add_parser('sources', help='Configured news sources')

        sources_subparsers = sources_parser.add_subparsers(
            dest='subcommand',
            help='Source operations',
            metavar='{fetch,list}'
        )

        fetch_parser = sources_subparsers.add_parser('fetch', help='Fetch articles from every enabled source')
        fetch_parser.add_argument('--hours', type=int, default=None, help='Only keep articles from the last N hours')
        fetch_parser.add_argument('--translate', action='store_true', help='Translate titles to the target language')
        fetch_parser.add_argument('--language', default=None, help='Target language (default: TARGET_LANGUAGE)')
        fetch_parser.add_argument('--remote', action='store_true', help='Ask the running node to ingest in the background')
        fetch_parser.add_argument('--json', action='store_true', help='Print raw JSON')

        sources_subparsers.add_parser('list', help='List configured sources')

    def _add_articles_parser(self, subparsers):
        """Add articles command parser."""
        articles_parser = subparsers.add_parser('articles', help='Articles on the running node')

        articles_subparsers = articles_parser.add_subparsers(
            dest='subcommand',
            help='Article operations',
            metavar='{list,resolve}'
        )

        list_parser = articles_subparsers.add_parser('list', help='List stored articles')
        list_parser.add_argument('--store', choices=['local', 'analyzed', 'federated'], default='local',
                                 help='Store to list (default: local)')
        list_parser.add_argument('--limit', type=int, default=None, help='Show at most N entries')
        list_parser.add_argument('--port', type=int, default=None, help='HTTP port of the running node')
        list_parser.add_argument('--json', action='store_true', help='Print raw JSON')

        resolve_parser = articles_subparsers.add_parser('resolve', help='Fetch, enrich and analyze one article')
        resolve_parser.add_argument('identifier', help='Article URL, id or content identifier')
        resolve_parser.add_argument('--port', type=int, default=None, help='HTTP port of the running node')
        resolve_parser.add_argument('--json', action='store_true', help='Print raw JSON')

    def _add_maintenance_parser(self, subparsers):
        """Add maintenance command parser."""
        maintenance_parser = subparsers.add_parser('maintenance', help='Storage housekeeping')

        maintenance_subparsers = maintenance_parser.add_subparsers(
            dest='subcommand',
            help='Maintenance operations',
            metavar='{clean-locks}'
        )

        clean_parser = maintenance_subparsers.add_parser('clean-locks', help='Remove stale LOCK files')
        clean_parser.add_argument('--path', nargs='+', default=None,
                                  help='Directories to sweep (default: keystore, docstore, blockstore)')

    def _get_examples_text(self) -> str:
        """Get examples text for help."""
        return """
Examples:
  # Run a node
  python run.py node start --init
  python run.py node status

  # Sources
  python run.py sources list
  python run.py sources fetch --hours 6
  python run.py sources fetch --remote --translate

  # Articles on the running node
  python run.py articles list --store analyzed
  python run.py articles resolve https://www.bbc.com/news/articles/example

  # After an unclean exit
  python run.py maintenance clean-locks
"""

    def route_command(self, args: Optional[List[str]] = None) -> int:
        """
        Route command to appropriate handler.

        Args:
            args: Command line arguments (uses sys.argv if None)

        Returns:
            Exit code
        """
        try:
            if args is None:
                args = sys.argv[1:]

            parsed_args = self.parser.parse_args(args)

            if not parsed_args.command:
                self.parser.print_help()
                return 1

            return self._handle_command(parsed_args)

        except SystemExit as e:
            # argparse calls sys.exit() on error or help
            return e.code if e.code is not None else 0
        except Exception as e:
            logger.error(f"CLI routing error: {e}", exc_info=True)
            return 1

    def _handle_command(self, args: argparse.Namespace) -> int:
        """Handle command structure."""
        logger.debug(f"Handling command: {args.command}")

        if args.command not in COMMANDS:
            available = ', '.join(COMMANDS.keys())
            logger.error(f"Unknown command '{args.command}'. Available: {available}")
            return 1

        subcommand = getattr(args, 'subcommand', None)
        if not subcommand:
            logger.error(f"No subcommand specified for '{args.command}'")
            try:
                self.parser.parse_args([args.command, '--help'])
            except SystemExit:
                pass
            return 1

        try:
            command = get_command(args.command)
            return command.execute(subcommand, args)
        except Exception as e:
            logger.error(f"Error executing {args.command} {subcommand}: {e}", exc_info=True)
            return 1


def main(args: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        args: Command line arguments (uses sys.argv if None)

    Returns:
        Exit code
    """
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    from core.config import get_config_manager
    try:
        get_config_manager().update_logging()
    except Exception as e:
        logger.error(f"Invalid configuration: {e}")
        return 22

    router = CLIRouter()
    return router.route_command(args)


if __name__ == '__main__':
    exit_code = main()
    sys.exit(exit_code)
