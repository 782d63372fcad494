#!/usr/bin/env python3
"""
Persisted runtime state.

Two small JSON files live next to the stores:

- the node status file read by UIs and the ``node status`` command;
- the DB path-reference file mapping logical collection names to the
  addresses they were opened at, so a restart reopens the same data.

Both are read at startup and rewritten on change. A missing or corrupted
file is treated as absent and replaced by defaults.
"""

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_PORT = 9001

DEFAULT_STATUS: Dict[str, Any] = {
    'running': False,
    'connected': False,
    'syncing': False,
    'orbit_connected': False,
    'last_sync': None,
    'peers': [],
    'logs': [],
    'port': DEFAULT_PORT,
}

DB_PATH_KEYS = ('articles', 'analyzed', 'debug', 'federated')


def _read_json(path: Path) -> Optional[Dict[str, Any]]:
    if not path.exists():
        return None
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Ignoring unreadable state file {path}: {e}")
        return None
    if not isinstance(data, dict):
        logger.warning(f"Ignoring state file {path}: expected a JSON object")
        return None
    return data


def _write_json(path: Path, data: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + '.tmp')
    with open(tmp_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2, default=str)
    tmp_path.replace(path)


class StatusStore:
    """Node status file with defaults merged under whatever is on disk."""

    def __init__(self, path: Union[str, Path], port: int = DEFAULT_PORT):
        self.path = Path(path)
        self._defaults = copy.deepcopy(DEFAULT_STATUS)
        self._defaults['port'] = port
        self._status: Dict[str, Any] = copy.deepcopy(self._defaults)

    def load(self) -> Dict[str, Any]:
        status = copy.deepcopy(self._defaults)
        status.update(_read_json(self.path) or {})
        self._status = status
        return self.get()

    def get(self) -> Dict[str, Any]:
        return copy.deepcopy(self._status)

    def update(self, **changes: Any) -> Dict[str, Any]:
        """Merge ``changes`` into the status and write it to disk."""
        self._status.update(changes)
        _write_json(self.path, self._status)
        return self.get()

    def delete(self) -> None:
        """Remove the file and reset to defaults."""
        try:
            self.path.unlink()
            logger.info(f"Deleted status file {self.path}")
        except FileNotFoundError:
            logger.debug(f"Status file already absent: {self.path}")
        self._status = copy.deepcopy(self._defaults)


class DBPathsStore:
    """Collection name to address map kept across restarts."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> Dict[str, str]:
        data = _read_json(self.path) or {}
        return {key: data[key] for key in DB_PATH_KEYS if isinstance(data.get(key), str)}

    def save(self, paths: Dict[str, str]) -> None:
        _write_json(self.path, {key: paths[key] for key in DB_PATH_KEYS if key in paths})
        logger.info(f"Saved DB paths to {self.path}")
