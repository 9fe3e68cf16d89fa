"""Exceptions raised by the offline asset cache."""


class CacheError(Exception):
    """Base class for offline cache failures."""


class NetworkError(CacheError):
    """Raised when an asset cannot be fetched from the network."""


class InstallError(CacheError):
    """Raised when a cache generation could not be populated in full."""


class LifecycleError(CacheError):
    """Raised when a lifecycle phase is triggered out of order."""


class OfflineError(CacheError):
    """Raised when a request misses the cache and the network is unreachable."""
