"""Environment-driven configuration shared by the API and the CLI."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


def _split_origins(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def _optional_float(raw: Optional[str]) -> Optional[float]:
    if raw is None or not raw.strip():
        return None
    return float(raw)


@dataclass(frozen=True)
class AppConfig:
    data_dir: Path = Path("data")
    cache_dir: Path = Path("data/cache")
    asset_origin: str = "http://localhost:8000/"
    fetch_timeout: Optional[float] = 30.0
    manifest_path: Optional[Path] = None
    environment: str = "prod"
    allowed_origins: List[str] = field(default_factory=list)

    @property
    def is_development(self) -> bool:
        return self.environment in {"dev", "development"}

    @classmethod
    def from_env(cls) -> "AppConfig":
        data_dir = Path(os.getenv("ZENSPEND_DATA_DIR", "data"))
        manifest = os.getenv("ZENSPEND_CACHE_MANIFEST")
        timeout = os.getenv("ZENSPEND_FETCH_TIMEOUT")
        return cls(
            data_dir=data_dir,
            cache_dir=Path(os.getenv("ZENSPEND_CACHE_DIR", str(data_dir / "cache"))),
            asset_origin=os.getenv("ZENSPEND_ASSET_ORIGIN", "http://localhost:8000/"),
            fetch_timeout=30.0 if timeout is None else _optional_float(timeout),
            manifest_path=Path(manifest) if manifest else None,
            environment=os.getenv("ZENSPEND_ENV", "prod").lower(),
            allowed_origins=_split_origins(os.getenv("ZENSPEND_ALLOWED_ORIGINS")),
        )
