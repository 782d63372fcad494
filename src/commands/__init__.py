#!/usr/bin/env python3
"""
Command endpoints for the news node.

Each top-level CLI command is handled by a dedicated command class.
"""

from typing import Dict, Type
from .base import BaseCommand
from .node import NodeCommand
from .sources import SourcesCommand
from .articles import ArticlesCommand
from .maintenance import MaintenanceCommand

# Command registry for easy extension
COMMANDS: Dict[str, Type[BaseCommand]] = {
    'node': NodeCommand,
    'sources': SourcesCommand,
    'articles': ArticlesCommand,
    'maintenance': MaintenanceCommand,
}


def get_command(command_name: str) -> BaseCommand:
    """Get a command instance by name."""
    if command_name not in COMMANDS:
        available = ', '.join(COMMANDS.keys())
        raise ValueError(f"Unknown command '{command_name}'. Available: {available}")

    command_class = COMMANDS[command_name]
    return command_class()
