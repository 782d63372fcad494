#!/usr/bin/env python3
"""
Base command class for the modular command architecture.

Provides common functionality and interface that all commands inherit.
Uses dependency injection for better testability and maintainability.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional
from argparse import Namespace

import requests

from core.container import get_container
from core.exceptions import ConfigurationError, NewsNodeError, StorageDirectoryError, ValidationError

logger = logging.getLogger(__name__)

NODE_REQUEST_TIMEOUT = 30


class NodeRequestError(NewsNodeError):
    """The running node could not be reached or answered with an error."""


class BaseCommand(ABC):
    """
    Base class for all command endpoints.

    Provides access to the services in the container and a small HTTP
    client for talking to a node that is already running, since the
    running node holds the store locks.
    """

    def __init__(self, container=None):
        """
        Initialize base command with dependency injection container.

        Args:
            container: Optional container instance. If None, uses global container.
        """
        self.logger = logging.getLogger(self.__class__.__name__)
        self._container = container or get_container()

    @property
    def config(self):
        """Get configuration from container."""
        return self._container.get('config')

    @property
    def sources(self):
        return self._container.get('sources')

    @property
    def parser_registry(self):
        return self._container.get('parser_registry')

    @property
    def validator(self):
        return self._container.get('validator')

    @property
    def enrichment_adapter(self):
        return self._container.get('enrichment_adapter')

    def create_fetcher(self):
        """Create new content fetcher instance."""
        return self._container.get('fetcher')

    def create_node(self):
        """Create a node lifecycle manager."""
        return self._container.get('node')

    def node_url(self, path: str, port: Optional[int] = None) -> str:
        port = port or self.config.network.http_port
        return f"http://127.0.0.1:{port}{path}"

    def request_node(self, method: str, path: str, port: Optional[int] = None, **kwargs) -> Any:
        """
        Call the HTTP API of the local running node.

        Raises:
            NodeRequestError: If the node is unreachable or returns an error body
        """
        url = self.node_url(path, port)
        try:
            response = requests.request(method, url, timeout=NODE_REQUEST_TIMEOUT, **kwargs)
        except requests.RequestException as e:
            raise NodeRequestError(f"Node not reachable at {url}: {e}", context={'url': url})

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code >= 400:
            message = body.get('error') if isinstance(body, dict) else response.text
            raise NodeRequestError(
                f"Node answered {response.status_code}: {message}",
                context={'url': url, 'status': response.status_code},
            )
        return body

    @abstractmethod
    def execute(self, subcommand: str, args: Namespace) -> int:
        """
        Execute the command with given subcommand and arguments.

        Args:
            subcommand: The specific action to perform
            args: Parsed command line arguments

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        pass

    def get_available_subcommands(self) -> List[str]:
        """
        Get list of available subcommands for this command.

        Returns:
            List of subcommand names
        """
        # Default implementation looks for methods that don't start with _
        methods = []
        for attr_name in dir(type(self)):
            if attr_name.startswith('_') or attr_name in ('execute', 'get_available_subcommands', 'handle_error',
                                                          'validate_args', 'create_fetcher', 'create_node',
                                                          'node_url', 'request_node'):
                continue
            if callable(getattr(type(self), attr_name)):
                methods.append(attr_name.replace('_', '-'))
        return methods

    def handle_error(self, error: Exception, context: str = "") -> int:
        """
        Standard error handling for commands.

        Args:
            error: The exception that occurred
            context: Additional context about where the error occurred

        Returns:
            Appropriate exit code
        """
        error_msg = f"{context}: {error}" if context else str(error)
        if isinstance(error, NewsNodeError):
            self.logger.error(error_msg)
        else:
            self.logger.error(error_msg, exc_info=True)

        # Map common exceptions to exit codes
        if isinstance(error, KeyboardInterrupt):
            self.logger.info("Command interrupted by user")
            return 130
        elif isinstance(error, (FileNotFoundError, StorageDirectoryError)):
            return 2
        elif isinstance(error, PermissionError):
            return 13
        elif isinstance(error, (ValueError, ValidationError, ConfigurationError)):
            return 22
        else:
            return 1

    def validate_args(self, args: Namespace, required_args: List[str] = None) -> bool:
        """
        Validate that required arguments are present.

        Returns:
            True if valid, False otherwise
        """
        if not required_args:
            return True

        missing = []
        for arg_name in required_args:
            if not hasattr(args, arg_name) or getattr(args, arg_name) is None:
                missing.append(arg_name)

        if missing:
            self.logger.error(f"Missing required arguments: {', '.join(missing)}")
            return False

        return True
