"""Persistence utilities for the budgeting core services."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Tuple

from .exceptions import PersistenceError

logger = logging.getLogger(__name__)

EXPENSES = "expenses.json"
PARKING = "parking.json"
SETTINGS = "settings.json"


class JSONStorage:
    """File-based JSON storage, one list of records per collection."""

    def __init__(self, base_path: Path) -> None:
        self._base_path = Path(base_path)
        try:
            self._base_path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistenceError(f"Unable to create data directory {self._base_path}") from exc

    def load(self, resource: str) -> List[Dict[str, Any]]:
        path = self._base_path / resource
        if not path.exists():
            return []
        try:
            with path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except json.JSONDecodeError as exc:
            raise PersistenceError(f"Corrupted JSON data in {path}") from exc
        except OSError as exc:
            raise PersistenceError(f"Unable to read from {path}") from exc

        if not isinstance(payload, list):
            raise PersistenceError(f"Expected list payload in {path}")
        return payload

    def save(self, resource: str, records: Iterable[Dict[str, Any]]) -> None:
        self.replace_many({resource: records})

    def replace_many(self, collections: Mapping[str, Iterable[Dict[str, Any]]]) -> None:
        """Write several collections, swapping them in only once every file is written.

        The current files are set aside during the swap and put back if any
        rename fails, so callers see either every collection replaced or none.
        """
        staged: List[Path] = []
        try:
            for resource, records in collections.items():
                temp_path = self._temp_path(resource)
                with temp_path.open("w", encoding="utf-8") as handle:
                    json.dump(list(records), handle, indent=2)
                    handle.flush()
                staged.append(temp_path)
        except OSError as exc:
            for temp_path in staged:
                temp_path.unlink(missing_ok=True)
            raise PersistenceError(f"Unable to write to {self._base_path}") from exc

        swapped: List[Tuple[str, bool]] = []
        try:
            for resource in collections:
                target = self._base_path / resource
                had_original = target.exists()
                if had_original:
                    target.replace(self._backup_path(resource))
                swapped.append((resource, had_original))
                # replace() is an atomic move on POSIX.
                self._temp_path(resource).replace(target)
        except OSError as exc:
            self._roll_back(swapped, collections)
            raise PersistenceError(f"Unable to replace data in {self._base_path}") from exc
        for resource, had_original in swapped:
            if had_original:
                self._backup_path(resource).unlink(missing_ok=True)
        logger.debug("Persisted %s", ", ".join(collections))

    def _roll_back(self, swapped: List[Tuple[str, bool]], resources: Iterable[str]) -> None:
        for resource, had_original in reversed(swapped):
            target = self._base_path / resource
            try:
                if had_original:
                    self._backup_path(resource).replace(target)
                else:
                    target.unlink(missing_ok=True)
            except OSError as exc:
                logger.error("Could not restore %s: %s", target, exc)
        for resource in resources:
            self._temp_path(resource).unlink(missing_ok=True)

    def _temp_path(self, resource: str) -> Path:
        path = self._base_path / resource
        return path.with_suffix(path.suffix + ".tmp")

    def _backup_path(self, resource: str) -> Path:
        path = self._base_path / resource
        return path.with_suffix(path.suffix + ".bak")

    @property
    def base_path(self) -> Path:
        return self._base_path
