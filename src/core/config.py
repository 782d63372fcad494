#!/usr/bin/env python3
"""
Centralized Configuration Manager

Provides a single source of truth for node configuration: storage
locations, HTTP and peer settings, the enrichment backend and logging.
Values come from the environment, with a .env file as fallback.
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Optional, Dict, List
from pathlib import Path

from .env_loader import PROJECT_ROOT, get_env_bool, get_env_list, load_env_file
from .exceptions import ConfigurationError
from .status import DEFAULT_PORT

logger = logging.getLogger(__name__)


@dataclass
class StorageConfig:
    """On-disk locations of the node's stores and state files."""
    data_dir: Path
    keystore_path: Path
    docstore_path: Path
    blockstore_path: Path
    status_file: Path
    db_paths_file: Path
    sources_file: Path

    def lock_directories(self) -> List[Path]:
        """Directories swept for stale LOCK sentinels."""
        return [self.keystore_path, self.docstore_path, self.blockstore_path]


@dataclass
class NetworkConfig:
    """HTTP boundary and peer settings."""
    http_host: str = "0.0.0.0"
    http_port: int = DEFAULT_PORT
    peers: List[str] = field(default_factory=list)
    peer_poll_interval: float = 5.0
    peer_timeout: float = 5.0


@dataclass
class IntegrationConfig:
    """External integration configuration."""
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"


@dataclass
class ApplicationConfig:
    """Core application configuration."""
    fetch_timeout: float = 10.0
    target_language: Optional[str] = "en"
    max_analysis_chars: int = 6000
    identity_id: Optional[str] = None

    # Logging
    log_level: str = "INFO"
    verbose_logging: bool = False


@dataclass
class Config:
    """Master configuration container."""
    storage: StorageConfig
    network: NetworkConfig
    integrations: IntegrationConfig
    app: ApplicationConfig

    def has_openai(self) -> bool:
        """Check if OpenAI integration is available."""
        return bool(self.integrations.openai_api_key)


def _path_env(key: str, default: Path) -> Path:
    value = os.getenv(key)
    if not value:
        return default
    path = Path(value).expanduser()
    return path if path.is_absolute() else PROJECT_ROOT / path


class ConfigManager:
    """Manages application configuration with validation and environment loading."""

    def __init__(self, env_file_path: str = ".env"):
        """
        Initialize configuration manager.

        Args:
            env_file_path: Path to .env file relative to project root
        """
        self._config: Optional[Config] = None
        load_env_file(env_file_path)

    def get_config(self, force_reload: bool = False) -> Config:
        """
        Get application configuration.

        Args:
            force_reload: Force reloading configuration from environment

        Returns:
            Complete configuration object
        """
        if self._config is None or force_reload:
            self._config = self._build_config()
        return self._config

    def _build_config(self) -> Config:
        """Build configuration from environment variables."""
        data_dir = _path_env('NODE_DATA_DIR', PROJECT_ROOT / 'data')

        try:
            storage_config = StorageConfig(
                data_dir=data_dir,
                keystore_path=_path_env('KEYSTORE_PATH', data_dir / 'keystore'),
                docstore_path=_path_env('DOCSTORE_PATH', data_dir / 'docstore'),
                blockstore_path=_path_env('BLOCKSTORE_PATH', data_dir / 'blockstore'),
                status_file=_path_env('STATUS_FILE_PATH', data_dir / 'status.json'),
                db_paths_file=_path_env('DB_PATHS_FILE', data_dir / 'db-paths.json'),
                sources_file=_path_env('SOURCES_FILE', PROJECT_ROOT / 'config' / 'sources.json'),
            )

            network_config = NetworkConfig(
                http_host=os.getenv('HTTP_HOST', '0.0.0.0'),
                http_port=int(os.getenv('HTTP_PORT', str(DEFAULT_PORT))),
                peers=get_env_list('PEERS'),
                peer_poll_interval=float(os.getenv('PEER_POLL_INTERVAL', '5')),
                peer_timeout=float(os.getenv('PEER_TIMEOUT', '5')),
            )

            integration_config = IntegrationConfig(
                openai_api_key=os.getenv('OPENAI_API_KEY') or None,
                openai_model=os.getenv('OPENAI_MODEL', 'gpt-4o-mini'),
            )

            app_config = ApplicationConfig(
                fetch_timeout=float(os.getenv('FETCH_TIMEOUT', '10')),
                target_language=os.getenv('TARGET_LANGUAGE', 'en') or None,
                max_analysis_chars=int(os.getenv('MAX_ANALYSIS_CHARS', '6000')),
                identity_id=os.getenv('IDENTITY_ID') or None,
                log_level=os.getenv('LOG_LEVEL', 'INFO').upper(),
                verbose_logging=get_env_bool('VERBOSE_LOGGING'),
            )
        except ValueError as e:
            raise ConfigurationError('environment', f"invalid numeric value: {e}")

        config = Config(
            storage=storage_config,
            network=network_config,
            integrations=integration_config,
            app=app_config
        )

        self._validate_config(config)
        return config

    def _validate_config(self, config: Config) -> None:
        """Validate configuration values."""
        errors = []

        if not 0 < config.network.http_port < 65536:
            errors.append("HTTP_PORT must be between 1 and 65535")

        if config.network.peer_poll_interval <= 0:
            errors.append("PEER_POLL_INTERVAL must be positive")

        if config.app.fetch_timeout <= 0:
            errors.append("FETCH_TIMEOUT must be positive")

        if config.app.max_analysis_chars < 100:
            errors.append("MAX_ANALYSIS_CHARS must be at least 100")

        for peer in config.network.peers:
            if not peer.startswith(('http://', 'https://')):
                errors.append(f"PEERS entry {peer} must be an http(s) URL")

        # Validate log level
        valid_log_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if config.app.log_level not in valid_log_levels:
            errors.append(f"LOG_LEVEL must be one of: {', '.join(valid_log_levels)}")

        if errors:
            raise ConfigurationError('config', '; '.join(errors))

        logger.debug("Configuration validation passed")

    def update_logging(self) -> None:
        """Configure logging based on current configuration."""
        config = self.get_config()

        # Set log level
        numeric_level = getattr(logging, config.app.log_level)
        logging.getLogger().setLevel(numeric_level)

        # Configure format
        if config.app.verbose_logging:
            format_str = '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'
        else:
            format_str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

        # Update existing handlers
        for handler in logging.getLogger().handlers:
            handler.setLevel(numeric_level)
            formatter = logging.Formatter(format_str, datefmt='%Y-%m-%d %H:%M:%S')
            handler.setFormatter(formatter)


# Global configuration manager instance
_config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """Get global configuration manager instance."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def get_config() -> Config:
    """Get application configuration."""
    return get_config_manager().get_config()


def reset_config() -> None:
    """Reset configuration manager (useful for testing)."""
    global _config_manager
    _config_manager = None
