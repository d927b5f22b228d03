"""Process-wide cache of loaded databases, keyed by name.

The cache never owns a database: the registry and the files on disk do.
Evicting an entry only drops the in-memory copy; the next
:meth:`DatabaseCache.get_or_load` reloads it from disk.

One ``asyncio.Lock`` per name gives single-writer discipline.  Writers
hold :meth:`lock` for the whole load → mutate → save cycle and call
:meth:`invalidate` after the files are written.  Cache misses load under
the same lock, so a load never straddles a write and the cache never
holds files older than the last completed mutation.  Readers of a cached
entry take a snapshot reference and never wait on writers.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable

import structlog

from src.models.rag import DatabaseInfo
from src.providers.vector_store.faiss_index import FaissIndex

logger = structlog.get_logger(logger_name=__name__)


@dataclass
class LoadedDatabase:
    """In-memory view of one database directory.

    Internal to the store layer, so a plain dataclass rather than a
    Pydantic model.
    """

    info: DatabaseInfo
    directory: Path
    index: FaissIndex
    doc_name_to_chunk_ids: dict[str, list[str]] = field(default_factory=dict)
    doc_name_to_hash: dict[str, str] = field(default_factory=dict)


Loader = Callable[[str], Awaitable[LoadedDatabase]]


class DatabaseCache:
    """Loaded-database cache with per-name locks."""

    def __init__(self, loader: Loader) -> None:
        self._loader = loader
        self._entries: dict[str, LoadedDatabase] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def lock(self, name: str) -> asyncio.Lock:
        """Return the writer lock for *name*, creating it on first use."""
        if name not in self._locks:
            self._locks[name] = asyncio.Lock()
        return self._locks[name]

    async def get_or_load(self, name: str) -> LoadedDatabase:
        """Return the cached entry for *name*, loading it on a miss.

        Must not be called while holding :meth:`lock` for the same name;
        writers use the loader directly.
        """
        entry = self._entries.get(name)
        if entry is not None:
            return entry
        # Concurrent first searches share a single load.
        async with self.lock(name):
            entry = self._entries.get(name)
            if entry is None:
                entry = await self._loader(name)
                self._entries[name] = entry
                logger.info("database_loaded", name=name, vectors=len(entry.index))
        return entry

    def invalidate(self, name: str) -> None:
        if self._entries.pop(name, None) is not None:
            logger.debug("database_cache_invalidated", name=name)

    def forget(self, name: str) -> None:
        """Drop every trace of *name* once its database is gone.

        The lock is kept while another task still holds it.
        """
        self.invalidate(name)
        lock = self._locks.get(name)
        if lock is not None and not lock.locked():
            del self._locks[name]
            logger.debug("database_cache_forgotten", name=name)

    def tracked_names(self) -> set[str]:
        return set(self._entries) | set(self._locks)

    def is_loaded(self, name: str) -> bool:
        return name in self._entries

    def clear(self) -> None:
        self._entries.clear()
