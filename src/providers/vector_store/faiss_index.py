"""FAISS vector index adapter.

Implements :class:`IVectorIndex` with ``faiss.IndexIDMap2`` wrapped around
``faiss.IndexFlatIP``: exact inner-product search over explicit int64 row
ids, so single rows can be removed without rebuilding the index.

The chunk payloads live beside the index in ``docstore.json``::

    {
      "next_row_id": 42,
      "chunks": {
        "<chunk_id>": {"row_id": 7, "page_content": "...", "metadata": {...}}
      }
    }

Row ids are handed out from ``next_row_id`` and never reused, mirroring the
never-reused chunk ids they stand for.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import faiss
import numpy as np
import structlog

from src.interfaces.vector_store_provider import IVectorIndex
from src.models.rag import Chunk
from src.utils.atomic_io import atomic_path, atomic_write_json, read_json
from src.utils.errors import StoreCorruptError, StoreError

logger = structlog.get_logger(logger_name=__name__)

INDEX_FILE = "index.faiss"
DOCSTORE_FILE = "docstore.json"


class FaissIndex(IVectorIndex):
    """One database's vectors and chunk payloads.

    Not thread-safe for concurrent mutation: the embedding store serialises
    writers per database name and only ever searches a loaded snapshot.
    """

    def __init__(
        self,
        dimension: int,
        index: Any = None,
        chunks: dict[str, tuple[int, Chunk]] | None = None,
        next_row_id: int = 0,
    ) -> None:
        self._dimension = dimension
        self._index = index if index is not None else faiss.IndexIDMap2(faiss.IndexFlatIP(dimension))
        self._chunks: dict[str, tuple[int, Chunk]] = dict(chunks or {})
        self._row_to_chunk: dict[int, str] = {row: cid for cid, (row, _) in self._chunks.items()}
        self._next_row_id = next_row_id

    @property
    def dimension(self) -> int:
        return self._dimension

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, directory: Path) -> "FaissIndex":
        """Load the index and docstore from *directory*.

        Raises
        ------
        StoreCorruptError
            If either file is missing or unreadable, or they disagree on
            the number of rows.
        """
        index_path = directory / INDEX_FILE
        docstore_path = directory / DOCSTORE_FILE
        if not index_path.exists() or not docstore_path.exists():
            raise StoreCorruptError(
                message=f"Missing {INDEX_FILE} or {DOCSTORE_FILE} in {directory}",
                provider_name="faiss",
            )
        try:
            index = faiss.read_index(str(index_path))
            raw = read_json(docstore_path)
            chunks = {
                chunk_id: (
                    int(entry["row_id"]),
                    Chunk(
                        chunk_id=chunk_id,
                        page_content=entry["page_content"],
                        metadata=entry.get("metadata", {}),
                    ),
                )
                for chunk_id, entry in raw.get("chunks", {}).items()
            }
            next_row_id = int(raw.get("next_row_id", 0))
        except (OSError, RuntimeError, ValueError, KeyError, TypeError) as exc:
            raise StoreCorruptError(
                message=f"Unreadable index in {directory}: {exc}",
                provider_name="faiss",
            ) from exc

        if index.ntotal != len(chunks):
            raise StoreCorruptError(
                message=(
                    f"Index in {directory} holds {index.ntotal} vectors "
                    f"but the docstore lists {len(chunks)} chunks"
                ),
                provider_name="faiss",
            )
        logger.debug("faiss_index_loaded", directory=str(directory), vectors=index.ntotal)
        return cls(index.d, index=index, chunks=chunks, next_row_id=next_row_id)

    def save(self, directory: Path) -> None:
        directory.mkdir(parents=True, exist_ok=True)
        with atomic_path(directory / INDEX_FILE) as tmp_path:
            faiss.write_index(self._index, str(tmp_path))
        atomic_write_json(
            directory / DOCSTORE_FILE,
            {
                "next_row_id": self._next_row_id,
                "chunks": {
                    chunk_id: {
                        "row_id": row_id,
                        "page_content": chunk.page_content,
                        "metadata": chunk.metadata,
                    }
                    for chunk_id, (row_id, chunk) in self._chunks.items()
                },
            },
        )
        logger.debug("faiss_index_saved", directory=str(directory), vectors=len(self))

    # ------------------------------------------------------------------
    # IVectorIndex implementation
    # ------------------------------------------------------------------

    def add(self, chunks: list[Chunk], vectors: list[list[float]]) -> None:
        if len(chunks) != len(vectors):
            raise StoreError(
                message=f"Got {len(vectors)} vectors for {len(chunks)} chunks",
                provider_name="faiss",
            )
        if not chunks:
            return
        matrix = np.asarray(vectors, dtype="float32")
        if matrix.ndim != 2 or matrix.shape[1] != self._dimension:
            raise StoreError(
                message=(
                    f"Vector dimension {matrix.shape[-1]} does not match "
                    f"index dimension {self._dimension}"
                ),
                provider_name="faiss",
            )
        duplicates = [c.chunk_id for c in chunks if c.chunk_id in self._chunks]
        if duplicates:
            raise StoreError(
                message=f"Chunk ids already indexed: {duplicates[:3]}",
                provider_name="faiss",
            )

        row_ids = np.arange(self._next_row_id, self._next_row_id + len(chunks), dtype="int64")
        self._index.add_with_ids(np.ascontiguousarray(matrix), row_ids)
        for row_id, chunk in zip(row_ids.tolist(), chunks):
            self._chunks[chunk.chunk_id] = (row_id, chunk)
            self._row_to_chunk[row_id] = chunk.chunk_id
        self._next_row_id += len(chunks)

    def delete(self, chunk_ids: list[str]) -> int:
        rows = []
        for chunk_id in chunk_ids:
            entry = self._chunks.pop(chunk_id, None)
            if entry is None:
                continue
            rows.append(entry[0])
            self._row_to_chunk.pop(entry[0], None)
        if rows:
            self._index.remove_ids(np.asarray(rows, dtype="int64"))
        return len(rows)

    def search(self, vector: list[float], k: int) -> list[tuple[Chunk, float]]:
        total = self._index.ntotal
        if total == 0 or k <= 0:
            return []
        query = np.asarray([vector], dtype="float32")
        scores, rows = self._index.search(query, min(k, total))
        hits: list[tuple[Chunk, float]] = []
        for score, row in zip(scores[0].tolist(), rows[0].tolist()):
            if row == -1:
                continue
            chunk_id = self._row_to_chunk.get(row)
            if chunk_id is None:
                continue
            hits.append((self._chunks[chunk_id][1], float(score)))
        return hits

    def chunk_ids(self) -> set[str]:
        return set(self._chunks)

    def __len__(self) -> int:
        return int(self._index.ntotal)
