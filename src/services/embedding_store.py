"""Named document databases: embed, persist, and search chunks.

Each database lives in ``<root>/<database_id>/``::

    index.faiss              FAISS IndexIDMap2(IndexFlatIP)
    docstore.json            chunk payloads keyed by chunk id
    docNameToChunkIds.json   {doc_name: [chunk_id, ...]}
    docNameToHash.json       {doc_name: sha256}

Every mutation follows load → mutate in memory → atomically rewrite the
index and mapping files → update the registry (create) or invalidate the
cache (add/delete).  The registry entry for a new database is written last,
so a failed creation never leaves a registered database behind.

Vectors are L2-normalized before indexing and searching, which turns the
inner-product index into cosine similarity regardless of the provider.
"""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path

import numpy as np
import structlog

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.models.rag import AddDocumentsResult, Chunk, DatabaseInfo, DocumentInfo, SearchResult
from src.providers.vector_store.faiss_index import FaissIndex
from src.services.database_cache import DatabaseCache, LoadedDatabase
from src.services.database_registry import DatabaseRegistry
from src.utils.atomic_io import atomic_write_json, read_json
from src.utils.errors import (
    AlreadyExistsError,
    EmbeddingProviderError,
    StoreCorruptError,
    StoreError,
)

logger = structlog.get_logger(logger_name=__name__)

MAPPING_FILE = "docNameToChunkIds.json"
HASHES_FILE = "docNameToHash.json"


def normalize_vectors(vectors: list[list[float]]) -> list[list[float]]:
    """L2-normalize each row; zero vectors are returned unchanged."""
    if not vectors:
        return []
    matrix = np.asarray(vectors, dtype="float32")
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    return (matrix / norms).tolist()


class EmbeddingStore:
    """Owns every database under *root_dir* and the cache of loaded ones."""

    def __init__(
        self,
        root_dir: Path,
        embedding_provider: IEmbeddingProvider,
        cache: DatabaseCache | None = None,
    ) -> None:
        self._root = Path(root_dir)
        self._root.mkdir(parents=True, exist_ok=True)
        self._embedding_provider = embedding_provider
        self._registry = DatabaseRegistry(self._root)
        self._registry_lock = asyncio.Lock()
        self._cache = cache or DatabaseCache(self._load)

    @property
    def cache(self) -> DatabaseCache:
        return self._cache

    @property
    def registry(self) -> DatabaseRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Loading / saving
    # ------------------------------------------------------------------

    async def _load(self, name: str) -> LoadedDatabase:
        info = self._registry.get(name)
        directory = self._root / info.id
        mapping_path = directory / MAPPING_FILE
        if not mapping_path.exists():
            raise StoreCorruptError(
                message=f"Database '{name}' is missing {MAPPING_FILE}",
                provider_name="embedding_store",
            )
        index = await asyncio.to_thread(FaissIndex.load, directory)
        try:
            mapping = read_json(mapping_path)
            hashes_path = directory / HASHES_FILE
            hashes = read_json(hashes_path) if hashes_path.exists() else {}
        except (OSError, ValueError) as exc:
            raise StoreCorruptError(
                message=f"Database '{name}' has an unreadable mapping file: {exc}",
                provider_name="embedding_store",
            ) from exc

        mapped = {cid for ids in mapping.values() for cid in ids}
        if mapped != index.chunk_ids():
            logger.warning(
                "database_mapping_mismatch",
                name=name,
                unmapped=len(index.chunk_ids() - mapped),
                missing=len(mapped - index.chunk_ids()),
            )
        return LoadedDatabase(
            info=info,
            directory=directory,
            index=index,
            doc_name_to_chunk_ids={k: list(v) for k, v in mapping.items()},
            doc_name_to_hash=dict(hashes),
        )

    @staticmethod
    def _save_sync(db: LoadedDatabase) -> None:
        db.index.save(db.directory)
        atomic_write_json(db.directory / MAPPING_FILE, db.doc_name_to_chunk_ids)
        atomic_write_json(db.directory / HASHES_FILE, db.doc_name_to_hash)

    async def _save(self, db: LoadedDatabase) -> None:
        await asyncio.to_thread(self._save_sync, db)

    async def _embed_chunks(self, chunks: list[Chunk]) -> list[list[float]]:
        if not chunks:
            return []
        vectors = await self._embedding_provider.embed([c.page_content for c in chunks])
        if len(vectors) != len(chunks):
            raise EmbeddingProviderError(
                message=f"Provider returned {len(vectors)} vectors for {len(chunks)} chunks",
                provider_name=self._embedding_provider.get_provider_name(),
            )
        return normalize_vectors(vectors)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def create(
        self,
        name: str,
        description: str,
        documents: dict[str, list[Chunk]],
        hashes: dict[str, str] | None = None,
    ) -> str:
        """Create database *name* from pre-chunked *documents*; return its id.

        All-or-nothing: on any failure the database directory is removed
        and no registry entry is written.
        """
        async with self._registry_lock:
            if self._registry.find(name) is not None:
                raise AlreadyExistsError(
                    message=f"Database '{name}' already exists",
                    provider_name="embedding_store",
                )
            database_id = self._registry.new_id()
            directory = self._root / database_id
            info = DatabaseInfo(id=database_id, name=name, description=description)

            try:
                index = FaissIndex(self._embedding_provider.get_dimension())
                mapping: dict[str, list[str]] = {}
                for doc_name, chunks in documents.items():
                    vectors = await self._embed_chunks(chunks)
                    if vectors and len(vectors[0]) != index.dimension and len(index) == 0:
                        # Trust the vectors over the provider's advertised size.
                        index = FaissIndex(len(vectors[0]))
                    await asyncio.to_thread(index.add, chunks, vectors)
                    mapping[doc_name] = [c.chunk_id for c in chunks]

                db = LoadedDatabase(
                    info=info,
                    directory=directory,
                    index=index,
                    doc_name_to_chunk_ids=mapping,
                    doc_name_to_hash=dict(hashes or {}),
                )
                await self._save(db)
                self._registry.add(info)
            except BaseException:
                await asyncio.to_thread(shutil.rmtree, directory, True)
                logger.warning("database_create_rolled_back", name=name, database_id=database_id)
                raise

        self._cache.invalidate(name)
        logger.info(
            "database_created",
            name=name,
            database_id=database_id,
            documents=len(documents),
            chunks=len(index),
        )
        return database_id

    async def add_documents(
        self,
        name: str,
        documents: dict[str, list[Chunk]],
        hashes: dict[str, str] | None = None,
    ) -> AddDocumentsResult:
        """Add or replace *documents* in *name*, best effort.

        A document whose embedding fails keeps its previous chunks (if any)
        and is reported in the log; the others are saved.
        """
        hashes = hashes or {}
        log: list[str] = []
        processed = failed = 0

        async with self._cache.lock(name):
            db = await self._load(name)
            for doc_name, chunks in documents.items():
                old_ids = db.doc_name_to_chunk_ids.get(doc_name, [])
                old_removed = False
                try:
                    vectors = await self._embed_chunks(chunks)
                    if old_ids:
                        await asyncio.to_thread(db.index.delete, old_ids)
                        old_removed = True
                    await asyncio.to_thread(db.index.add, chunks, vectors)
                except (EmbeddingProviderError, StoreError) as exc:
                    if old_removed:
                        # The previous version is gone from the index, so its
                        # mapping entry must go too.
                        db.doc_name_to_chunk_ids.pop(doc_name, None)
                        db.doc_name_to_hash.pop(doc_name, None)
                    failed += 1
                    log.append(f"Failed to add {doc_name}: {exc}")
                    logger.warning("document_add_failed", name=name, doc_name=doc_name, error=str(exc))
                    continue

                db.doc_name_to_chunk_ids[doc_name] = [c.chunk_id for c in chunks]
                if doc_name in hashes:
                    db.doc_name_to_hash[doc_name] = hashes[doc_name]
                processed += 1
                verb = "Replaced" if old_ids else "Added"
                log.append(f"{verb} {doc_name} ({len(chunks)} chunks)")

            await self._save(db)
            self._cache.invalidate(name)

        logger.info("documents_added", name=name, processed=processed, failed=failed)
        return AddDocumentsResult(
            success=failed == 0,
            message=f"Added {processed} document(s), {failed} failed",
            log=log,
            processed=processed,
            failed=failed,
        )

    async def delete_document(self, name: str, doc_name: str) -> int:
        """Remove *doc_name* and exactly its chunks; return how many were removed."""
        async with self._cache.lock(name):
            db = await self._load(name)
            chunk_ids = db.doc_name_to_chunk_ids.get(doc_name)
            if chunk_ids is None:
                logger.warning("document_not_found", name=name, doc_name=doc_name)
                return 0
            removed = await asyncio.to_thread(db.index.delete, chunk_ids)
            del db.doc_name_to_chunk_ids[doc_name]
            db.doc_name_to_hash.pop(doc_name, None)
            await self._save(db)
            self._cache.invalidate(name)

        logger.info("document_deleted", name=name, doc_name=doc_name, chunks=removed)
        return removed

    async def search(self, name: str, query: str, k: int) -> list[SearchResult]:
        """Return the *k* nearest chunks of *name* to *query* by inner product."""
        db = await self._cache.get_or_load(name)
        vector = normalize_vectors([await self._embedding_provider.embed_query(query)])[0]
        hits = await asyncio.to_thread(db.index.search, vector, k)
        return [
            SearchResult(page_content=chunk.page_content, metadata=chunk.metadata, score=score)
            for chunk, score in hits
        ]

    async def delete(self, name: str) -> None:
        """Remove database *name*: registry entry first, then its files."""
        async with self._cache.lock(name):
            async with self._registry_lock:
                info = self._registry.get(name)
                self._registry.remove(info.id)
            await asyncio.to_thread(shutil.rmtree, self._root / info.id, True)
            self._cache.invalidate(name)
        self._cache.forget(name)
        logger.info("database_deleted", name=name, database_id=info.id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_databases(self) -> list[DatabaseInfo]:
        return self._registry.list()

    def exists(self, name: str) -> bool:
        return self._registry.find(name) is not None

    def get_description(self, name: str) -> str:
        return self._registry.get(name).description

    async def set_description(self, name: str, description: str) -> None:
        async with self._registry_lock:
            self._registry.set_description(self._registry.get(name).id, description)
        self._cache.invalidate(name)

    async def list_documents(self, name: str) -> list[DocumentInfo]:
        db = await self._cache.get_or_load(name)
        return [
            DocumentInfo(name=Path(doc_name).name, path=doc_name, chunk_count=len(ids))
            for doc_name, ids in db.doc_name_to_chunk_ids.items()
        ]

    async def get_document_hashes(self, name: str) -> dict[str, str]:
        db = await self._cache.get_or_load(name)
        return dict(db.doc_name_to_hash)
