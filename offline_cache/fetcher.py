"""Network access for cache misses and installs."""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urljoin

import requests

from .exceptions import NetworkError
from .storage import AssetRequest, AssetResponse

logger = logging.getLogger(__name__)

# Hop-by-hop and encoding headers describe the transfer, not the cached body.
_DROPPED_HEADERS = {"connection", "content-encoding", "content-length", "transfer-encoding"}


class NetworkFetcher:
    """Fetches assets from the asset origin or from absolute URLs."""

    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = 30.0,
    ) -> None:
        self._base_url = base_url
        self._session = session or requests.Session()
        self._timeout = timeout

    def resolve(self, url: str) -> str:
        return urljoin(self._base_url, url)

    def fetch(self, request: AssetRequest) -> AssetResponse:
        target = self.resolve(request.url)
        try:
            response = self._session.get(
                target, headers={"Accept": request.accept}, timeout=self._timeout
            )
        except requests.RequestException as exc:
            logger.warning("Fetch of %s failed: %s", target, exc)
            raise NetworkError(f"Unable to fetch {target}") from exc

        headers = {
            name: value for name, value in response.headers.items()
            if name.lower() not in _DROPPED_HEADERS
        }
        return AssetResponse(
            url=request.url,
            status=response.status_code,
            body=response.content,
            headers=headers,
        )
