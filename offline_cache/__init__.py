"""Versioned, cache-first store for the front-end's static assets."""

from .controller import CacheController, WorkerState
from .exceptions import CacheError, InstallError, LifecycleError, NetworkError, OfflineError
from .fetcher import NetworkFetcher
from .manifest import CacheManifest
from .storage import AssetRequest, AssetResponse, CacheStorage

__all__ = [
    "AssetRequest",
    "AssetResponse",
    "CacheController",
    "CacheError",
    "CacheManifest",
    "CacheStorage",
    "InstallError",
    "LifecycleError",
    "NetworkError",
    "NetworkFetcher",
    "OfflineError",
    "WorkerState",
    "build_controller",
]


def build_controller(config) -> CacheController:
    """Wire a controller from an ``AppConfig``."""
    manifest = (
        CacheManifest.from_file(config.manifest_path)
        if config.manifest_path
        else CacheManifest()
    )
    fetcher = NetworkFetcher(config.asset_origin, timeout=config.fetch_timeout)
    return CacheController(manifest, CacheStorage(config.cache_dir), fetcher)
