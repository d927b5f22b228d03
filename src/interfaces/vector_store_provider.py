"""Abstract base class for a persisted inner-product vector index.

One instance holds the vectors and chunk payloads of exactly one database.
The index is a dependency, not something this project implements: the
concrete adapter wraps FAISS.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from src.models.rag import Chunk


# Concrete implementation: FaissIndex (src/providers/vector_store/faiss_index.py)
class IVectorIndex(ABC):
    """Contract for the per-database nearest-neighbour index.

    All methods are synchronous and CPU/disk bound; callers run them via
    ``asyncio.to_thread``.
    """

    @abstractmethod
    def add(self, chunks: list[Chunk], vectors: list[list[float]]) -> None:
        """Index *chunks* with their *vectors* (same order, same length)."""

    @abstractmethod
    def delete(self, chunk_ids: list[str]) -> int:
        """Remove the given chunk ids; return how many were present."""

    @abstractmethod
    def search(self, vector: list[float], k: int) -> list[tuple[Chunk, float]]:
        """Return up to *k* ``(chunk, inner_product)`` pairs, best first."""

    @abstractmethod
    def chunk_ids(self) -> set[str]:
        """Return every chunk id currently indexed."""

    @abstractmethod
    def save(self, directory: Path) -> None:
        """Persist the index into *directory*, replacing files atomically."""

    @abstractmethod
    def __len__(self) -> int:
        """Number of indexed vectors."""
