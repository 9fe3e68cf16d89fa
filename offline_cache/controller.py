"""Install/activate/fetch lifecycle for the offline asset cache."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from enum import Enum
from typing import List, Optional, Set

from .exceptions import InstallError, LifecycleError, NetworkError, OfflineError
from .fetcher import NetworkFetcher
from .manifest import CacheManifest
from .storage import AssetRequest, AssetResponse, CacheStorage

logger = logging.getLogger(__name__)


class WorkerState(str, Enum):
    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVATED = "activated"
    REDUNDANT = "redundant"


class CacheController:
    """Serves assets cache-first for one manifest generation.

    A controller whose tag is already the active generation on disk starts
    out activated, and one whose generation is on disk but not yet active
    starts out installed. Otherwise it must be installed and activated first.
    """

    def __init__(
        self,
        manifest: CacheManifest,
        storage: CacheStorage,
        fetcher: NetworkFetcher,
    ) -> None:
        self.manifest = manifest
        self._storage = storage
        self._fetcher = fetcher
        self._lock = threading.Lock()
        self._writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="cache-put")
        self._pending: Set[Future] = set()
        self.waiting = False
        self.controls_clients = False
        if storage.active_tag() == manifest.tag and storage.has(manifest.tag):
            self.state = WorkerState.ACTIVATED
            self.controls_clients = True
        elif storage.has(manifest.tag):
            self.state = WorkerState.INSTALLED
        else:
            self.state = WorkerState.PARSED

    @property
    def tag(self) -> str:
        return self.manifest.tag

    # Lifecycle ------------------------------------------------------------
    def install(self) -> None:
        """Populate this generation with every manifest asset, or nothing at all."""
        with self._lock:
            if self.state not in (WorkerState.PARSED, WorkerState.REDUNDANT):
                raise LifecycleError(f"Cannot install from state {self.state.value}")
            self.state = WorkerState.INSTALLING
            logger.info("Installing cache %s (%d assets)", self.tag, len(self.manifest.assets))
            try:
                responses = [self._fetch_for_install(url) for url in self.manifest.assets]
                self._storage.populate(self.tag, responses)
            except (NetworkError, OSError) as exc:
                self.state = WorkerState.REDUNDANT
                logger.error("Install of cache %s failed: %s", self.tag, exc)
                raise InstallError(f"Install of cache {self.tag} failed") from exc
            self.state = WorkerState.INSTALLED
            self.waiting = True
        self.skip_waiting()

    def skip_waiting(self) -> None:
        """Become eligible to activate without waiting for open clients to close."""
        self.waiting = False

    def activate(self) -> List[str]:
        """Delete every other generation and take control of clients."""
        with self._lock:
            if self.state is not WorkerState.INSTALLED or self.waiting:
                raise LifecycleError(f"Cannot activate from state {self.state.value}")
            self.state = WorkerState.ACTIVATING
            deleted = [tag for tag in self._storage.keys() if tag != self.tag]
            for tag in deleted:
                self._storage.delete(tag)
                logger.info("Deleted stale cache %s", tag)
            self._storage.set_active(self.tag)
            self.state = WorkerState.ACTIVATED
        self.claim()
        return deleted

    def claim(self) -> None:
        self.controls_clients = True

    # Fetch interception ---------------------------------------------------
    def fetch(self, request: AssetRequest) -> AssetResponse:
        if self.state is not WorkerState.ACTIVATED:
            raise LifecycleError("Fetches are only intercepted once the cache is activated")

        cached = self._storage.match(request.url)
        if cached is not None:
            return cached

        try:
            response = self._fetcher.fetch(request)
        except NetworkError as exc:
            if request.accepts_html:
                fallback = self._storage.match(self.manifest.offline_fallback)
                if fallback is not None:
                    logger.info("Serving offline page for %s", request.url)
                    return fallback
            raise OfflineError(f"{request.url} is not cached and the network is unavailable") from exc

        if response.status == 200:
            self._store_later(response)
        return response

    def wait_for_pending(self, timeout: Optional[float] = None) -> None:
        """Block until background cache writes have finished."""
        wait(list(self._pending), timeout=timeout)

    def close(self) -> None:
        self._writer.shutdown(wait=True)

    # Internal helpers -----------------------------------------------------
    def _fetch_for_install(self, url: str) -> AssetResponse:
        response = self._fetcher.fetch(AssetRequest(url))
        if not response.ok:
            raise NetworkError(f"{url} answered with status {response.status}")
        return response

    def _store_later(self, response: AssetResponse) -> None:
        cache = self._storage.open(self.tag)
        future = self._writer.submit(cache.put, response)
        self._pending.add(future)
        future.add_done_callback(self._finish_put)

    def _finish_put(self, future: Future) -> None:
        self._pending.discard(future)
        exc = future.exception()
        if exc is not None:
            logger.warning("Caching a fetched response failed: %s", exc)
