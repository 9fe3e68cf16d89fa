"""Versioned list of the assets that make up the front-end bundle."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple

TAG_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,63}$")

DEFAULT_TAG = "zenspend-v1"

DEFAULT_ASSETS = (
    "/",
    "/index.html",
    "/styles.css",
    "/app.js",
    "/manifest.json",
    "/assets/mascot-zen.png",
    "/assets/mascot-suspicious.png",
    "/assets/mascot-panicked.png",
    "/assets/mascot-disappointed.png",
    "/assets/mascot-proud.png",
    "/assets/soft-chime.mp3",
    "/assets/hurtful-crunch.mp3",
    "/assets/icon-192.png",
    "/assets/icon-512.png",
    "https://cdn.jsdelivr.net/npm/dexie@3.2.4/dist/dexie.min.js",
    "https://cdn.jsdelivr.net/npm/chart.js@4.4.0/dist/chart.umd.min.js",
    "https://cdn.jsdelivr.net/npm/crypto-js@4.2.0/crypto-js.min.js",
)


def validate_tag(tag: str) -> str:
    if not isinstance(tag, str) or not TAG_PATTERN.fullmatch(tag):
        raise ValueError(f"Invalid cache generation tag: {tag!r}")
    return tag


@dataclass(frozen=True)
class CacheManifest:
    """A cache generation tag and the URLs cached under it.

    Bumping ``tag`` is the only way to roll out new assets; individual
    entries are never invalidated.
    """

    tag: str = DEFAULT_TAG
    assets: Tuple[str, ...] = DEFAULT_ASSETS
    offline_fallback: str = "/index.html"

    def __post_init__(self) -> None:
        validate_tag(self.tag)
        if self.offline_fallback not in self.assets:
            raise ValueError("offline_fallback must be one of the manifest assets")

    @classmethod
    def from_file(cls, path: Path) -> "CacheManifest":
        with Path(path).open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        return cls(
            tag=payload["tag"],
            assets=tuple(payload["assets"]),
            offline_fallback=payload.get("offline_fallback", "/index.html"),
        )
