#!/usr/bin/env python3
"""
Environment variable loader with .env file support.

Variables already present in the environment always win over the file.
"""

import os
from pathlib import Path
import logging
from typing import List, Optional, Union

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent.parent


def load_env_file(env_file_path: Union[str, Path] = ".env") -> int:
    """
    Load environment variables from a .env file if it exists.

    Args:
        env_file_path: Absolute path, or path relative to the project root

    Returns:
        Number of variables loaded
    """
    env_path = Path(env_file_path)
    if not env_path.is_absolute():
        env_path = PROJECT_ROOT / env_path

    if not env_path.exists():
        logger.debug(f"No .env file found at {env_path}")
        return 0

    try:
        with open(env_path, 'r', encoding='utf-8') as f:
            lines = f.readlines()
    except OSError as e:
        logger.error(f"Error loading .env file {env_path}: {e}")
        return 0

    loaded_count = 0
    for line_num, line in enumerate(lines, 1):
        line = line.strip()

        # Skip empty lines and comments
        if not line or line.startswith('#'):
            continue

        if '=' not in line:
            logger.warning(f"Invalid .env format at line {line_num}: {line}")
            continue

        key, value = line.split('=', 1)
        key = key.strip()
        value = value.strip()

        # Remove quotes if present
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
            value = value[1:-1]

        if key not in os.environ:
            os.environ[key] = value
            loaded_count += 1
            logger.debug(f"Loaded {key} from .env")
        else:
            logger.debug(f"Skipped {key} (already in environment)")

    logger.info(f"Loaded {loaded_count} variables from {env_path}")
    return loaded_count



def get_env_bool(key: str, default: bool = False) -> bool:
    value = os.environ.get(key)
    if value is None or value == "":
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def get_env_list(key: str, default: Optional[List[str]] = None) -> List[str]:
    """Comma-separated variable as a list with blanks dropped."""
    value = os.environ.get(key)
    if not value:
        return list(default or [])
    return [item.strip() for item in value.split(',') if item.strip()]
