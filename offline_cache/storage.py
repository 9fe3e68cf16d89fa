"""On-disk cache generations, one directory per tag."""

from __future__ import annotations

import hashlib
import json
import logging
import shutil
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .manifest import validate_tag

logger = logging.getLogger(__name__)

INDEX_FILE = "index.json"
ACTIVE_MARKER = ".active"
STAGING_PREFIX = ".staging-"


@dataclass(frozen=True)
class AssetRequest:
    url: str
    accept: str = "*/*"

    @property
    def accepts_html(self) -> bool:
        return "text/html" in (self.accept or "")


@dataclass(frozen=True)
class AssetResponse:
    url: str
    status: int
    body: bytes
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def _body_name(url: str) -> str:
    return hashlib.sha256(url.encode("utf-8")).hexdigest()


class Cache:
    """A single cache generation."""

    def __init__(self, path: Path, lock: threading.Lock) -> None:
        self._path = path
        self._lock = lock

    @property
    def path(self) -> Path:
        return self._path

    def match(self, url: str) -> Optional[AssetResponse]:
        entry = self._index().get(url)
        if entry is None:
            return None
        body_path = self._path / entry["file"]
        try:
            body = body_path.read_bytes()
        except FileNotFoundError:
            return None
        return AssetResponse(
            url=url, status=entry["status"], body=body, headers=dict(entry["headers"])
        )

    def put(self, response: AssetResponse) -> None:
        with self._lock:
            self._path.mkdir(parents=True, exist_ok=True)
            _write_entry(self._path, response)
            index = self._index()
            index[response.url] = _entry_for(response)
            _write_index(self._path, index)

    def urls(self) -> List[str]:
        return sorted(self._index())

    def _index(self) -> Dict[str, Dict[str, object]]:
        path = self._path / INDEX_FILE
        if not path.exists():
            return {}
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)


def _entry_for(response: AssetResponse) -> Dict[str, object]:
    return {
        "file": _body_name(response.url),
        "status": response.status,
        "headers": dict(response.headers),
    }


def _write_entry(directory: Path, response: AssetResponse) -> None:
    (directory / _body_name(response.url)).write_bytes(response.body)


def _write_index(directory: Path, index: Dict[str, Dict[str, object]]) -> None:
    temp_path = directory / (INDEX_FILE + ".tmp")
    with temp_path.open("w", encoding="utf-8") as handle:
        json.dump(index, handle, indent=2, sort_keys=True)
    temp_path.replace(directory / INDEX_FILE)


class CacheStorage:
    """All cache generations under one root directory."""

    def __init__(self, root: Path) -> None:
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    @property
    def root(self) -> Path:
        return self._root

    def keys(self) -> List[str]:
        return sorted(
            path.name for path in self._root.iterdir()
            if path.is_dir() and not path.name.startswith(".")
        )

    def has(self, tag: str) -> bool:
        return (self._root / validate_tag(tag)).is_dir()

    def open(self, tag: str) -> Cache:
        return Cache(self._root / validate_tag(tag), self._lock)

    def delete(self, tag: str) -> bool:
        path = self._root / validate_tag(tag)
        if not path.is_dir():
            return False
        shutil.rmtree(path)
        if self.active_tag() == tag:
            (self._root / ACTIVE_MARKER).unlink(missing_ok=True)
        return True

    def match(self, url: str) -> Optional[AssetResponse]:
        """Look ``url`` up in every generation, oldest tag first."""
        for tag in self.keys():
            response = self.open(tag).match(url)
            if response is not None:
                return response
        return None

    def populate(self, tag: str, responses: Iterable[AssetResponse]) -> Cache:
        """Write a complete generation, replacing any previous one with the same tag.

        Responses are written to a staging directory that is renamed into
        place only once every entry is on disk.
        """
        validate_tag(tag)
        staging = self._root / f"{STAGING_PREFIX}{tag}"
        target = self._root / tag
        shutil.rmtree(staging, ignore_errors=True)
        staging.mkdir(parents=True)
        try:
            index = {}
            for response in responses:
                _write_entry(staging, response)
                index[response.url] = _entry_for(response)
            _write_index(staging, index)
            with self._lock:
                if target.exists():
                    shutil.rmtree(target)
                staging.rename(target)
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise
        logger.info("Populated cache %s with %d assets", tag, len(index))
        return self.open(tag)

    def active_tag(self) -> Optional[str]:
        marker = self._root / ACTIVE_MARKER
        if not marker.exists():
            return None
        return marker.read_text(encoding="utf-8").strip() or None

    def set_active(self, tag: str) -> None:
        (self._root / ACTIVE_MARKER).write_text(validate_tag(tag), encoding="utf-8")
