#!/usr/bin/env python3
"""
Replicated document store.

Each collection is a key-indexed set of JSON documents. Every write is an
entry stamped with a Lamport clock and the writer's identity; concurrent
entries for the same key are merged with a last-writer-wins register
ordered by ``(clock, writer)``. Deletes are tombstones so they replicate
like any other write.

Collections persist to SQLite under ``<engine dir>/<address>/store.db``
and hold a ``LOCK`` sentinel in their directory while open.
"""

import asyncio
import hashlib
import inspect
import json
import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from core.exceptions import StoreClosedError, StoreError
from .locks import acquire_lock, release_lock

logger = logging.getLogger(__name__)

Predicate = Callable[[Dict[str, Any]], bool]


@dataclass(frozen=True)
class Entry:
    """One write in a collection's history."""
    key: str
    value: Optional[Dict[str, Any]]
    clock: int
    writer: str
    deleted: bool = False

    def stamp(self) -> Tuple[int, str]:
        return (self.clock, self.writer)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'key': self.key,
            'value': self.value,
            'clock': self.clock,
            'writer': self.writer,
            'deleted': self.deleted,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Entry':
        return cls(
            key=str(data['key']),
            value=data.get('value'),
            clock=int(data['clock']),
            writer=str(data['writer']),
            deleted=bool(data.get('deleted', False)),
        )


class Events:
    """Minimal event emitter; async listeners are scheduled as tasks."""

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {}
        self._tasks = set()

    def on(self, event: str, callback: Callable) -> None:
        self._listeners.setdefault(event, []).append(callback)

    def off(self, event: str, callback: Callable) -> None:
        listeners = self._listeners.get(event, [])
        if callback in listeners:
            listeners.remove(callback)

    def emit(self, event: str, payload: Any) -> None:
        for callback in list(self._listeners.get(event, [])):
            try:
                result = callback(payload)
                if inspect.isawaitable(result):
                    task = asyncio.ensure_future(result)
                    self._tasks.add(task)
                    task.add_done_callback(self._tasks.discard)
            except Exception as e:
                logger.warning(f"Listener for '{event}' failed: {e}")


class _MemoryBackend:
    def __init__(self):
        self._entries: Dict[str, Entry] = {}

    def load(self) -> Dict[str, Entry]:
        return dict(self._entries)

    def write(self, entry: Entry) -> None:
        self._entries[entry.key] = entry

    def close(self) -> None:
        pass


class _SqliteBackend:
    _SCHEMA = """
        CREATE TABLE IF NOT EXISTS entries (
            key TEXT PRIMARY KEY,
            value TEXT,
            clock INTEGER NOT NULL,
            writer TEXT NOT NULL,
            deleted INTEGER NOT NULL DEFAULT 0
        )
    """

    def __init__(self, path: Path):
        self._conn = sqlite3.connect(str(path))
        self._conn.execute(self._SCHEMA)
        self._conn.commit()

    def load(self) -> Dict[str, Entry]:
        rows = self._conn.execute("SELECT key, value, clock, writer, deleted FROM entries").fetchall()
        return {
            key: Entry(key, json.loads(value) if value is not None else None, clock, writer, bool(deleted))
            for key, value, clock, writer, deleted in rows
        }

    def write(self, entry: Entry) -> None:
        value = json.dumps(entry.value, default=str) if entry.value is not None else None
        self._conn.execute(
            "INSERT OR REPLACE INTO entries (key, value, clock, writer, deleted) VALUES (?, ?, ?, ?, ?)",
            (entry.key, value, entry.clock, entry.writer, int(entry.deleted)),
        )
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()


class DocumentCollection:
    """
    A named, key-indexed document collection.

    Reads are served from an in-memory view of the latest entry per key;
    writes go through the backend first, then update the view.
    """

    def __init__(self, name: str, address: str, index_by: str, writer: str,
                 backend, lock_path: Optional[Path] = None,
                 on_close: Optional[Callable[['DocumentCollection'], None]] = None):
        self.name = name
        self.address = address
        self.index_by = index_by
        self.writer = writer
        self.events = Events()
        self._backend = backend
        self._lock_path = lock_path
        self._on_close = on_close
        self._entries = backend.load()
        self._clock = max((e.clock for e in self._entries.values()), default=0)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def clock(self) -> int:
        return self._clock

    def _ensure_open(self) -> None:
        if self._closed:
            raise StoreClosedError(self.name)

    def _key_of(self, doc: Dict[str, Any]) -> str:
        key = doc.get(self.index_by)
        if key is None or key == "":
            raise StoreError(f"Document has no '{self.index_by}' field", context={'collection': self.name})
        return str(key)

    def _apply(self, entry: Entry) -> bool:
        current = self._entries.get(entry.key)
        if current is not None and current.stamp() >= entry.stamp():
            return False
        self._backend.write(entry)
        self._entries[entry.key] = entry
        self._clock = max(self._clock, entry.clock)
        return True

    async def put(self, doc: Dict[str, Any]) -> str:
        """Insert or replace ``doc`` under its index key."""
        self._ensure_open()
        key = self._key_of(doc)
        entry = Entry(key, doc, self._clock + 1, self.writer)
        self._apply(entry)
        self.events.emit('update', entry)
        return key

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        self._ensure_open()
        entry = self._entries.get(str(key))
        if entry is None or entry.deleted:
            return None
        return entry.value

    async def all(self) -> List[Dict[str, Any]]:
        self._ensure_open()
        return [e.value for e in self._entries.values() if not e.deleted and e.value is not None]

    async def query(self, predicate: Predicate) -> List[Dict[str, Any]]:
        return [doc for doc in await self.all() if predicate(doc)]

    async def delete(self, key: str) -> None:
        self._ensure_open()
        entry = Entry(str(key), None, self._clock + 1, self.writer, deleted=True)
        self._apply(entry)
        self.events.emit('update', entry)

    def entries_since(self, clock: int = 0) -> List[Dict[str, Any]]:
        """Entries newer than ``clock``, oldest first, for peer replication."""
        entries = sorted((e for e in self._entries.values() if e.clock > clock), key=Entry.stamp)
        return [e.to_dict() for e in entries]

    async def merge(self, entries: List[Dict[str, Any]]) -> int:
        """
        Merge entries received from a peer.

        Returns:
            Number of entries that won against the local state
        """
        self._ensure_open()
        applied = 0
        for raw in entries:
            try:
                entry = Entry.from_dict(raw)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed replication entry for {self.name}: {e}")
                continue
            if self._apply(entry):
                applied += 1
        if applied:
            self.events.emit('replicated', {'collection': self.name, 'applied': applied})
        return applied

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._backend.close()
        if self._lock_path:
            release_lock(self._lock_path)
        if self._on_close:
            self._on_close(self)
        logger.debug(f"Closed collection {self.name} ({self.address})")


def collection_address(name: str, identity_id: str) -> str:
    digest = hashlib.sha256(f"{identity_id}:{name}".encode('utf-8')).hexdigest()[:32]
    return f"/docstore/{digest}/{name}"


class DocumentStoreEngine:
    """
    Opens and tracks collections.

    With ``directory=None`` collections live in memory only.
    """

    def __init__(self, directory: Optional[Union[str, Path]] = None, identity_id: str = "local"):
        self.directory = Path(directory) if directory is not None else None
        self.identity_id = identity_id
        self._collections: Dict[str, DocumentCollection] = {}
        self._lock_path: Optional[Path] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def collections(self) -> Dict[str, DocumentCollection]:
        return dict(self._collections)

    async def start(self) -> None:
        if self._running:
            return
        if self.directory is not None:
            self.directory.mkdir(parents=True, exist_ok=True)
            self._lock_path = acquire_lock(self.directory, owner="docstore")
        self._running = True
        logger.info(f"Document store engine started ({self.directory or 'memory'})")

    async def open(self, name: str, index_by: str = "_id", address: Optional[str] = None) -> DocumentCollection:
        """
        Open a collection, reusing ``address`` when one was recorded earlier.

        Raises:
            StoreClosedError: If the engine is not running
            StoreLockedError: If the collection directory holds a LOCK
        """
        if not self._running:
            raise StoreClosedError("document store engine")
        address = address or collection_address(name, self.identity_id)
        if address in self._collections:
            return self._collections[address]

        lock_path = None
        if self.directory is None:
            backend = _MemoryBackend()
        else:
            collection_dir = self.directory / address.strip('/').replace('/', '_')
            collection_dir.mkdir(parents=True, exist_ok=True)
            lock_path = acquire_lock(collection_dir, owner=name)
            try:
                backend = _SqliteBackend(collection_dir / "store.db")
            except sqlite3.Error as e:
                release_lock(lock_path)
                raise StoreError(f"Cannot open collection {name}: {e}", context={'address': address})

        collection = DocumentCollection(
            name=name,
            address=address,
            index_by=index_by,
            writer=self.identity_id,
            backend=backend,
            lock_path=lock_path,
            on_close=lambda c: self._collections.pop(c.address, None),
        )
        self._collections[address] = collection
        logger.info(f"Opened collection {name} at {address}")
        return collection

    def get_collection(self, name: str) -> Optional[DocumentCollection]:
        for collection in self._collections.values():
            if collection.name == name:
                return collection
        return None

    async def stop(self) -> None:
        if not self._running:
            return
        for collection in list(self._collections.values()):
            await collection.close()
        self._running = False
        if self._lock_path:
            release_lock(self._lock_path)
            self._lock_path = None
        logger.info("Document store engine stopped")
