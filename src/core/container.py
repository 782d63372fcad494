#!/usr/bin/env python3
"""
Dependency Injection Container

The composition root: stores, adapters and the lifecycle manager are
built here from configuration and handed to whoever needs them, never
kept as module-level state elsewhere. Supports singleton and factory
registrations.
"""

import logging
from typing import Any, Dict, Callable, TypeVar, Optional
from functools import wraps

logger = logging.getLogger(__name__)

T = TypeVar('T')


class Container:
    """Simple dependency injection container with lifecycle management."""

    def __init__(self):
        """Initialize empty container."""
        self._factories: Dict[str, Callable] = {}
        self._singletons: Dict[str, Any] = {}

    def register_singleton(self, service_name: str, factory: Callable[[], T]) -> None:
        """
        Register a service as singleton (created once, reused).

        Args:
            service_name: Unique name for the service
            factory: Function that creates the service instance
        """
        factory._is_singleton = True
        self._factories[service_name] = factory
        # Remove any existing instance to force recreation
        self._singletons.pop(service_name, None)

    def register_factory(self, service_name: str, factory: Callable[[], T]) -> None:
        """
        Register a service as factory (new instance each time).

        Args:
            service_name: Unique name for the service
            factory: Function that creates service instances
        """
        self._factories[service_name] = factory

    def register_instance(self, service_name: str, instance: T) -> None:
        """Register an existing instance as singleton."""
        self._singletons[service_name] = instance

    def get(self, service_name: str) -> Any:
        """
        Get service instance by name.

        Raises:
            KeyError: If service is not registered
        """
        if service_name in self._singletons:
            return self._singletons[service_name]

        if service_name not in self._factories:
            raise KeyError(f"Service '{service_name}' not registered")

        factory = self._factories[service_name]
        instance = factory()
        if getattr(factory, '_is_singleton', False):
            self._singletons[service_name] = instance
            logger.debug(f"Created singleton instance for '{service_name}'")
        else:
            logger.debug(f"Created new instance for '{service_name}'")
        return instance

    def has(self, service_name: str) -> bool:
        """Check if service is registered."""
        return service_name in self._factories or service_name in self._singletons

    def clear(self) -> None:
        """Clear all registered services and instances."""
        self._factories.clear()
        self._singletons.clear()

    def reset_singleton(self, service_name: str) -> None:
        """Reset a singleton instance (will be recreated on next get())."""
        if self._singletons.pop(service_name, None) is not None:
            logger.debug(f"Reset singleton '{service_name}'")


def singleton(factory_func: Callable[[], T]) -> Callable[[], T]:
    """
    Decorator to mark a factory function as singleton.

    Usage:
        @singleton
        def create_registry():
            return create_default_registry()
    """
    @wraps(factory_func)
    def wrapper():
        return factory_func()

    wrapper._is_singleton = True
    return wrapper


# Global container instance
_container: Optional[Container] = None


def get_container() -> Container:
    """Get global container instance."""
    global _container
    if _container is None:
        _container = Container()
        _setup_default_services(_container)
    return _container


def reset_container() -> None:
    """Reset global container (useful for testing)."""
    global _container
    if _container:
        _container.clear()
    _container = None


def _setup_default_services(container: Container) -> None:
    """Set up default service registrations with configuration injection."""

    def config():
        return container.get('config')

    @singleton
    def create_config():
        from core.config import get_config
        return get_config()

    @singleton
    def create_sources():
        from core.models import load_sources
        path = config().storage.sources_file
        if not path.exists():
            logger.warning(f"No sources file at {path}, starting without sources")
            return []
        return load_sources(path)

    @singleton
    def create_parser_registry():
        from core.sources.registry import create_default_registry
        return create_default_registry()

    @singleton
    def create_validator():
        from core.validation import ArticleValidator
        return ArticleValidator()

    def create_openai_client():
        from integrations.openai_client import OpenAIClient
        cfg = config()
        if not cfg.has_openai():
            raise ValueError("OpenAI API key not configured")
        return OpenAIClient(api_key=cfg.integrations.openai_api_key, model=cfg.integrations.openai_model)

    @singleton
    def create_enrichment_adapter():
        from core.analysis import EnrichmentAdapter
        cfg = config()
        client = container.get('openai_client') if cfg.has_openai() else None
        if client is None:
            logger.info("No OpenAI key configured, enrichment uses text fallbacks only")
        return EnrichmentAdapter(client=client, max_chars=cfg.app.max_analysis_chars)

    def create_fetcher():
        from core.content import ContentFetcher
        return ContentFetcher(timeout=config().app.fetch_timeout)

    def create_network():
        from core.network import PeerNetwork
        cfg = config()
        return PeerNetwork(
            peers=cfg.network.peers,
            poll_interval=cfg.network.peer_poll_interval,
            timeout=cfg.network.peer_timeout,
        )

    def create_node():
        from core.lifecycle import NodeLifecycleManager
        return NodeLifecycleManager(
            config=config(),
            network=container.get('network'),
            fetcher=container.get('fetcher'),
            adapter=container.get('enrichment_adapter'),
            parser_registry=container.get('parser_registry'),
            sources=container.get('sources'),
            validator=container.get('validator'),
        )

    # Register services
    container.register_singleton('config', create_config)
    container.register_singleton('sources', create_sources)
    container.register_singleton('parser_registry', create_parser_registry)
    container.register_singleton('validator', create_validator)
    container.register_singleton('enrichment_adapter', create_enrichment_adapter)

    # Non-singletons
    container.register_factory('openai_client', create_openai_client)
    container.register_factory('fetcher', create_fetcher)
    container.register_factory('network', create_network)
    container.register_factory('node', create_node)

    logger.debug("Default services registered in container")

