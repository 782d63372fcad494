#!/usr/bin/env python3
"""
Peer transport.

Peers are other nodes' HTTP boundaries. The transport probes their
``/status`` route on an interval and records the result in the status
file, pulls replication entries for a collection and fetches missing
blocks by content identifier.
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

import aiohttp

from core.models import utc_now_iso
from core.storage.documents import DocumentCollection

logger = logging.getLogger(__name__)


class PeerNetwork:
    """HTTP connectivity to the configured peers."""

    def __init__(self, peers: Iterable[str] = (), status_store=None, audit=None,
                 poll_interval: float = 5.0, timeout: float = 5.0,
                 session: Optional[aiohttp.ClientSession] = None):
        """
        Initialize the transport.

        Args:
            peers: Base URLs of peer nodes
            status_store: StatusStore updated by each poll
            audit: Debug log store receiving peer state changes
            poll_interval: Seconds between status polls
            timeout: Per-request timeout in seconds
            session: Existing session to share
        """
        self.peers: List[str] = [p.rstrip('/') for p in peers if p and p.strip()]
        self.status_store = status_store
        self.audit = audit
        self.poll_interval = poll_interval
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None
        self._poll_task: Optional[asyncio.Task] = None
        self._peer_state: Dict[str, bool] = {}
        self._replication_clocks: Dict[Tuple[str, str], int] = {}
        self._replicated: List[DocumentCollection] = []

    def replicate(self, collection: DocumentCollection) -> None:
        """Pull ``collection`` from connected peers after every status poll."""
        if collection not in self._replicated:
            self._replicated.append(collection)

    @property
    def running(self) -> bool:
        return self._session is not None and not self._session.closed

    async def start(self) -> None:
        if self.running:
            return
        self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))
        self._owns_session = True
        logger.info(f"Peer transport started with {len(self.peers)} peers")

    async def stop(self) -> None:
        await self.stop_polling()
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None
        logger.info("Peer transport stopped")

    def _require_session(self) -> aiohttp.ClientSession:
        if not self.running:
            raise RuntimeError("PeerNetwork must be started before use")
        return self._session

    async def probe_peer(self, peer: str) -> Dict[str, Any]:
        """Ask one peer for its status."""
        session = self._require_session()
        try:
            async with session.get(f"{peer}/status") as response:
                if response.status >= 400:
                    return {'url': peer, 'connected': False, 'error': f"HTTP {response.status}"}
                status = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            return {'url': peer, 'connected': False, 'error': str(e) or e.__class__.__name__}
        running = bool(status.get('running')) if isinstance(status, dict) else False
        return {'url': peer, 'connected': running}

    async def probe_peers(self) -> List[Dict[str, Any]]:
        if not self.peers:
            return []
        return list(await asyncio.gather(*(self.probe_peer(p) for p in self.peers)))

    async def poll_once(self) -> List[Dict[str, Any]]:
        """Probe every peer, log each state and update the status file."""
        results = await self.probe_peers()
        for result in results:
            peer, connected = result['url'], result['connected']
            if connected:
                logger.info(f"Peer {peer} is connected")
            else:
                logger.info(f"Peer {peer} is unreachable: {result.get('error', 'not running')}")
            if self._peer_state.get(peer) != connected:
                self._peer_state[peer] = connected
                if self.audit is not None:
                    level = "info" if connected else "warn"
                    await self.audit.add(f"Peer {peer} {'connected' if connected else 'disconnected'}", level, result)

        if self.status_store is not None:
            self.status_store.update(
                peers=results,
                connected=any(r['connected'] for r in results),
            )
        return results

    async def _poll_forever(self) -> None:
        while True:
            try:
                results = await self.poll_once()
                if any(r['connected'] for r in results):
                    for collection in list(self._replicated):
                        if not collection.closed:
                            await self.pull_replication(collection)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Peer status poll failed: {e}")
            await asyncio.sleep(self.poll_interval)

    def start_polling(self) -> asyncio.Task:
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.ensure_future(self._poll_forever())
        return self._poll_task

    async def stop_polling(self) -> None:
        task, self._poll_task = self._poll_task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            logger.debug("Peer status polling stopped")

    async def pull_replication(self, collection: DocumentCollection) -> int:
        """
        Pull new entries of ``collection`` from every peer and merge them.

        Returns:
            Number of entries applied locally
        """
        session = self._require_session()
        if self.status_store is not None:
            self.status_store.update(syncing=True)

        applied = 0
        try:
            for peer in self.peers:
                key = (peer, collection.name)
                since = self._replication_clocks.get(key, 0)
                url = f"{peer}/replication/{collection.name}"
                try:
                    async with session.get(url, params={'since': str(since)}) as response:
                        if response.status >= 400:
                            logger.warning(f"Replication from {peer} failed: HTTP {response.status}")
                            continue
                        payload = await response.json(content_type=None)
                except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
                    logger.warning(f"Replication from {peer} failed: {e}")
                    continue

                entries = payload.get('entries', []) if isinstance(payload, dict) else []
                applied += await collection.merge(entries)
                clocks = [e.get('clock', 0) for e in entries if isinstance(e, dict)]
                if clocks:
                    self._replication_clocks[key] = max(since, *clocks)
        finally:
            if self.status_store is not None:
                self.status_store.update(syncing=False, last_sync=utc_now_iso())

        logger.info(f"Replicated {applied} entries into {collection.name}")
        return applied

    async def fetch_block(self, cid: str) -> Optional[bytes]:
        """Ask peers for a block; the first answer wins."""
        if not self.running:
            return None
        for peer in self.peers:
            try:
                async with self._session.get(f"{peer}/blocks/{cid}") as response:
                    if response.status == 200:
                        return await response.read()
                    logger.debug(f"Peer {peer} has no block {cid}: HTTP {response.status}")
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                logger.debug(f"Block request to {peer} failed: {e}")
        return None
