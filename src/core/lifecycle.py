#!/usr/bin/env python3
"""
Node Lifecycle Manager.

Brings the node's subsystems up in dependency order and tears them down
in a fixed order that tolerates partial failure. Startup failures are
fatal; shutdown failures are logged and the next step runs anyway.
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, List, Optional

from core.config import Config
from core.exceptions import LifecycleError, StorageDirectoryError
from core.http_api import HttpBoundary, create_app
from core.models import Source
from core.network import PeerNetwork
from core.orchestrator import BackgroundTasks, SourceFetchOrchestrator
from core.resolution import ContentResolver
from core.services import NodeServices
from core.status import DBPathsStore, StatusStore
from core.storage import DocumentStoreEngine, FilesystemBlobStore, Keystore, clean_lock_files
from core.storage.blobs import BlobStore
from core.stores import AnalyzedArticleStore, DebugLogStore, FederatedPointerStore, LocalArticleStore
from core.validation import ArticleValidator

logger = logging.getLogger(__name__)

COLLECTION_CLOSE_PAUSE = 0.01
PRE_ENGINE_STOP_PAUSE = 0.15


class NodeLifecycleManager:
    """Owns every open resource of a running node."""

    def __init__(self, config: Config, network: PeerNetwork, fetcher, adapter, parser_registry,
                 sources: Optional[List[Source]] = None, validator: Optional[ArticleValidator] = None,
                 blob_store: Optional[BlobStore] = None, serve_http: bool = True,
                 terminate: Optional[Callable[[], Any]] = None):
        """
        Initialize the manager.

        Args:
            config: Node configuration
            network: Peer transport
            fetcher: Content fetcher shared by resolution and ingestion
            adapter: Enrichment adapter
            parser_registry: Hostname parser registry
            sources: Configured sources
            validator: Article schema validator
            blob_store: Blob store; a filesystem store under the blockstore path by default
            serve_http: Start the HTTP boundary
            terminate: Called as the last shutdown step
        """
        self.config = config
        self.network = network
        self.fetcher = fetcher
        self.adapter = adapter
        self.parser_registry = parser_registry
        self.sources = list(sources or [])
        self.validator = validator or ArticleValidator()
        self.blob_store = blob_store
        self.serve_http = serve_http
        self.terminate = terminate

        self.keystore: Optional[Keystore] = None
        self.engine: Optional[DocumentStoreEngine] = None
        self.status_store = StatusStore(config.storage.status_file, config.network.http_port)
        self.db_paths = DBPathsStore(config.storage.db_paths_file)
        self.debug_log: Optional[DebugLogStore] = None
        self.local_store: Optional[LocalArticleStore] = None
        self.analyzed_store: Optional[AnalyzedArticleStore] = None
        self.federated_store: Optional[FederatedPointerStore] = None
        self.background: Optional[BackgroundTasks] = None
        self.services: Optional[NodeServices] = None
        self.http: Optional[HttpBoundary] = None

        self._started = False
        self._shutting_down = False

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> NodeServices:
        """
        Start every subsystem in order.

        Returns:
            Services bound to the opened stores

        Raises:
            StorageDirectoryError: If the data directory does not exist
        """
        storage = self.config.storage
        if not storage.data_dir.is_dir():
            raise StorageDirectoryError(str(storage.data_dir), "data directory does not exist")

        try:
            await self._start()
        except Exception as e:
            logger.error(f"Node startup failed: {e}")
            await self.shutdown()
            raise

        self._started = True
        logger.info(f"Node started on port {self.config.network.http_port}")
        return self.services

    async def _start(self) -> None:
        storage = self.config.storage

        for directory in storage.lock_directories():
            removed = clean_lock_files(directory)
            if removed:
                logger.warning(f"Removed {removed} stale lock files from {directory}")

        await self.network.start()

        self.keystore = Keystore(storage.keystore_path, self.config.app.identity_id)
        identity_id = await self.keystore.open()
        self.engine = DocumentStoreEngine(storage.docstore_path, identity_id)
        await self.engine.start()

        self.status_store.load()
        addresses = self.db_paths.load()

        debug_collection = await self.engine.open('debug', index_by='id', address=addresses.get('debug'))
        self.debug_log = DebugLogStore(debug_collection)
        await self.debug_log.ensure_initialized()

        local_collection = await self.engine.open('articles', index_by='url', address=addresses.get('articles'))
        self.local_store = LocalArticleStore(local_collection, 'articles', audit=self.debug_log)

        analyzed_collection = await self.engine.open('analyzed', index_by='id', address=addresses.get('analyzed'))
        self.analyzed_store = AnalyzedArticleStore(analyzed_collection, 'analyzed', audit=self.debug_log)

        self.federated_store = FederatedPointerStore(audit=self.debug_log)
        self.db_paths.save({
            'debug': debug_collection.address,
            'articles': local_collection.address,
            'analyzed': analyzed_collection.address,
        })

        self.network.status_store = self.status_store
        self.network.audit = self.debug_log
        for collection in (local_collection, analyzed_collection, debug_collection):
            self.network.replicate(collection)

        if self.blob_store is None:
            self.blob_store = FilesystemBlobStore(storage.blockstore_path)
        self.blob_store.set_remote(self.network.fetch_block)
        await self.blob_store.start()
        self.federated_store.attach_blob_store(self.blob_store)

        self.background = BackgroundTasks(audit=self.debug_log)
        resolver = ContentResolver(
            self.local_store, self.analyzed_store, self.fetcher, self.parser_registry, self.adapter,
            federated_store=self.federated_store, target_language=self.config.app.target_language,
        )
        orchestrator = SourceFetchOrchestrator(
            self.fetcher, adapter=self.adapter, local_store=self.local_store,
            audit=self.debug_log, validator=self.validator,
        )
        self.services = NodeServices(
            self.local_store, self.analyzed_store, self.federated_store, self.debug_log,
            resolver, orchestrator, self.blob_store, self.status_store, self.sources,
            self.background, adapter=self.adapter, target_language=self.config.app.target_language,
        )

        if self.serve_http:
            self.http = HttpBoundary(create_app(self.services.as_handlers()))
            await self.http.start(self.config.network.http_host, self.config.network.http_port)

        self.network.start_polling()

        self.status_store.update(running=True, orbit_connected=True, port=self.config.network.http_port)
        await self.debug_log.add("Node started", "info", {'identity': identity_id})

    async def _step(self, name: str, action: Callable[[], Any]) -> None:
        try:
            result = action()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(LifecycleError(name, e).message)

    async def shutdown(self) -> None:
        """Stop everything; calls after the first are no-ops."""
        if self._shutting_down:
            logger.debug("Shutdown already in progress")
            return
        self._shutting_down = True
        logger.info("Shutting down node")

        await self._step('stop polling', self.network.stop_polling)

        for store in (self.local_store, self.analyzed_store, self.federated_store, self.debug_log):
            if store is None:
                continue
            await self._step(f"close {getattr(store, 'name', 'debug')}", store.close)
            await asyncio.sleep(COLLECTION_CLOSE_PAUSE)

        await asyncio.sleep(PRE_ENGINE_STOP_PAUSE)

        if self.engine is not None:
            await self._step('stop document store', self.engine.stop)
        if self.keystore is not None:
            await self._step('close keystore', self.keystore.close)
        if self.blob_store is not None:
            await self._step('stop blob store', self.blob_store.stop)
        await self._step('stop transport', self.network.stop)
        await self._step('delete status file', self.status_store.delete)
        if self.http is not None:
            await self._step('close HTTP boundary', self.http.close)

        for directory in self.config.storage.lock_directories():
            await self._step(f"clean locks in {directory}", lambda d=directory: clean_lock_files(d))

        self._started = False
        logger.info("Node shutdown complete")

        if self.terminate is not None:
            await self._step('terminate', self.terminate)
