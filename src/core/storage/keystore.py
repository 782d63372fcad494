#!/usr/bin/env python3
"""
Node identity keystore.

Holds the node's writer identity, created once and reused across restarts
so replicated entries from this node keep the same writer tag.
"""

import json
import logging
import uuid
from pathlib import Path
from typing import Optional, Union

from core.exceptions import StoreError
from .locks import acquire_lock, release_lock

logger = logging.getLogger(__name__)


class Keystore:
    """Identity file plus LOCK sentinel inside the keystore directory."""

    IDENTITY_FILE = "identity.json"

    def __init__(self, directory: Union[str, Path], identity_id: Optional[str] = None):
        self.directory = Path(directory)
        self._requested_id = identity_id
        self._identity_id: Optional[str] = None
        self._lock_path: Optional[Path] = None

    @property
    def identity_id(self) -> str:
        if self._identity_id is None:
            raise StoreError("Keystore is not open")
        return self._identity_id

    @property
    def is_open(self) -> bool:
        return self._lock_path is not None

    async def open(self) -> str:
        """Lock the keystore and load (or create) the identity."""
        self.directory.mkdir(parents=True, exist_ok=True)
        self._lock_path = acquire_lock(self.directory, owner="keystore")

        identity_path = self.directory / self.IDENTITY_FILE
        stored_id = None
        if identity_path.exists():
            try:
                stored_id = json.loads(identity_path.read_text(encoding='utf-8')).get('id')
            except (OSError, ValueError) as e:
                logger.warning(f"Unreadable identity file {identity_path}, creating a new identity: {e}")

        identity_id = self._requested_id or stored_id or str(uuid.uuid4())
        if identity_id != stored_id:
            identity_path.write_text(json.dumps({'id': identity_id}), encoding='utf-8')
            logger.info(f"Stored node identity {identity_id}")

        self._identity_id = identity_id
        return identity_id

    async def close(self) -> None:
        if self._lock_path:
            release_lock(self._lock_path)
            self._lock_path = None
