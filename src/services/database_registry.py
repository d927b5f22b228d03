"""Durable registry of document databases.

``<databases_dir>/registry.json`` is the single source of truth for which
databases exist::

    {
      "databases":    {"1718000000000": "handbook"},
      "descriptions": {"1718000000000": "Employee handbook, 2024 edition"}
    }

Ids are the millisecond timestamp at creation.  Entries are appended and
removed individually; every update rewrites the file atomically and
carries unrelated entries over untouched.
"""

from __future__ import annotations

import time
from pathlib import Path

import structlog

from src.models.rag import DatabaseInfo
from src.utils.atomic_io import atomic_write_json, read_json
from src.utils.errors import AlreadyExistsError, StoreCorruptError, StoreNotFoundError

logger = structlog.get_logger(logger_name=__name__)

REGISTRY_FILE = "registry.json"


class DatabaseRegistry:
    """Reads and updates ``registry.json``.

    Callers serialise updates (the embedding store holds a registry lock);
    reads are always served from disk so a restarted process sees exactly
    what was last written.
    """

    def __init__(self, root: Path) -> None:
        self._root = root
        self._path = root / REGISTRY_FILE

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, dict[str, str]]:
        if not self._path.exists():
            return {"databases": {}, "descriptions": {}}
        try:
            raw = read_json(self._path)
        except (OSError, ValueError) as exc:
            raise StoreCorruptError(
                message=f"Unreadable registry {self._path}: {exc}",
                provider_name="registry",
            ) from exc
        return {
            "databases": dict(raw.get("databases") or {}),
            "descriptions": dict(raw.get("descriptions") or {}),
        }

    def _write(self, data: dict[str, dict[str, str]]) -> None:
        atomic_write_json(self._path, data)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list(self) -> list[DatabaseInfo]:
        data = self._read()
        return [
            DatabaseInfo(id=db_id, name=name, description=data["descriptions"].get(db_id, ""))
            for db_id, name in data["databases"].items()
        ]

    def find(self, name: str) -> DatabaseInfo | None:
        for info in self.list():
            if info.name == name:
                return info
        return None

    def get(self, name: str) -> DatabaseInfo:
        info = self.find(name)
        if info is None:
            raise StoreNotFoundError(message=f"Database '{name}' not found", provider_name="registry")
        return info

    def new_id(self) -> str:
        """Return a millisecond-timestamp id not yet present in the registry."""
        existing = self._read()["databases"]
        candidate = int(time.time() * 1000)
        while str(candidate) in existing:
            candidate += 1
        return str(candidate)

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def add(self, info: DatabaseInfo) -> None:
        data = self._read()
        if info.name in data["databases"].values():
            raise AlreadyExistsError(
                message=f"Database '{info.name}' already exists",
                provider_name="registry",
            )
        data["databases"][info.id] = info.name
        data["descriptions"][info.id] = info.description
        self._write(data)
        logger.info("registry_entry_added", database_id=info.id, name=info.name)

    def remove(self, database_id: str) -> None:
        data = self._read()
        data["databases"].pop(database_id, None)
        data["descriptions"].pop(database_id, None)
        self._write(data)
        logger.info("registry_entry_removed", database_id=database_id)

    def set_description(self, database_id: str, description: str) -> None:
        data = self._read()
        if database_id not in data["databases"]:
            raise StoreNotFoundError(
                message=f"Database id '{database_id}' not found",
                provider_name="registry",
            )
        data["descriptions"][database_id] = description
        self._write(data)
