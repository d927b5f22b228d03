"""Orchestrator for the document ingestion pipeline.

Pipeline stages: **extract -> title -> chunk -> embed -> store**.

The :class:`IngestionService` coordinates four collaborators (text
extractor, title generator, chunker, embedding store) without any of them
knowing about each other.  Both public entry points follow the same
per-file flow:

    1. TextExtractor  -- reads the raw format, returns normalized documents
    2. TitleGenerator -- replaces the file-name title for prose formats
    3. TextChunker    -- splits documents into token-bounded chunks
    4. EmbeddingStore -- embeds the chunks and persists the database

They differ in failure policy:

* :meth:`IngestionService.create_database` is **strict** -- the first file
  that cannot be extracted aborts the whole creation and nothing is
  written.
* :meth:`IngestionService.add_documents` is **best effort** -- unchanged
  files (same sha256) are skipped, changed files replace their previous
  chunks, and failures are collected into the returned log.

Documents are keyed by the path string as collected, so re-adding the same
file is recognised as a replacement.
"""

from __future__ import annotations

import asyncio
import hashlib
from pathlib import Path
from typing import Callable, Sequence

import structlog

from src.config.settings import Settings
from src.models.rag import AddDocumentsResult, Chunk, Document
from src.services.embedding_store import EmbeddingStore
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.text_extractor import TextExtractor
from src.services.ingestion.title_generator import TitleGenerator
from src.utils.errors import (
    AlreadyExistsError,
    ExtractionError,
    StoreNotFoundError,
    UnsupportedFormatError,
)

logger = structlog.get_logger(logger_name=__name__)

ProgressCallback = Callable[[str], None]

_HASH_BLOCK_SIZE = 1 << 20


def file_sha256(path: Path) -> str:
    """Return the hex sha256 of the file's bytes."""
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for block in iter(lambda: handle.read(_HASH_BLOCK_SIZE), b""):
            digest.update(block)
    return digest.hexdigest()


def _noop_progress(_: str) -> None:
    return None


class IngestionService:
    """Builds and maintains named document databases from files on disk.

    Parameters
    ----------
    extractor:
        Per-extension document extraction.
    chunker:
        Token-bounded splitting of extracted documents.
    store:
        Embedding and persistence of chunks.
    title_generator:
        Optional LLM title generation for prose formats.  When omitted,
        documents keep their file-name title.
    settings:
        Source of the default chunk size, overlap and folder depth.
    """

    def __init__(
        self,
        extractor: TextExtractor,
        chunker: TextChunker,
        store: EmbeddingStore,
        title_generator: TitleGenerator | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._extractor = extractor
        self._chunker = chunker
        self._store = store
        self._title_generator = title_generator
        self._settings = settings or Settings()

    # ------------------------------------------------------------------
    # File discovery
    # ------------------------------------------------------------------

    def collect_files(self, paths: Sequence[Path | str], max_depth: int | None = None) -> list[Path]:
        """Expand *paths* into the list of files to ingest.

        Files named explicitly are kept as-is (an unsupported one fails
        later, at extraction).  Directories are walked up to *max_depth*
        levels deep and only files with a supported extension are kept.
        Duplicates are dropped, first occurrence wins.
        """
        depth = self._settings.folder_depth if max_depth is None else max_depth
        collected: list[Path] = []
        seen: set[Path] = set()

        def _add(file_path: Path) -> None:
            if file_path not in seen:
                seen.add(file_path)
                collected.append(file_path)

        def _walk(directory: Path, level: int) -> None:
            for entry in sorted(directory.iterdir()):
                if entry.is_dir():
                    if level < depth:
                        _walk(entry, level + 1)
                elif entry.is_file() and self._extractor.supports(entry):
                    _add(entry)

        for raw in paths:
            path = Path(raw)
            if path.is_dir():
                _walk(path, 1)
            else:
                _add(path)
        return collected

    # ------------------------------------------------------------------
    # Per-file processing
    # ------------------------------------------------------------------

    async def _titled(self, path: Path, documents: list[Document]) -> list[Document]:
        if self._title_generator is None or not documents:
            return documents
        if not self._extractor.generates_title(path):
            return documents
        title = await self._title_generator.generate(documents[0].text, path.name)
        return [
            document.model_copy(update={"metadata": {**document.metadata, "title": title}})
            for document in documents
        ]

    async def _process_file(
        self,
        path: Path,
        chunk_size: int,
        overlap_percent: float,
    ) -> list[Chunk]:
        if not path.is_file():
            raise ExtractionError(message=f"No such file: {path}", path=str(path))
        documents = await asyncio.to_thread(self._extractor.extract, path)
        documents = await self._titled(path, documents)
        chunks, _ = await asyncio.to_thread(
            self._chunker.chunk_file, str(path), documents, chunk_size, overlap_percent
        )
        return chunks

    def _chunk_params(
        self, chunk_size: int | None, overlap_percent: float | None
    ) -> tuple[int, float]:
        return (
            chunk_size if chunk_size is not None else self._settings.chunk_size,
            overlap_percent if overlap_percent is not None else self._settings.chunk_overlap_percent,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def create_database(
        self,
        name: str,
        description: str,
        paths: Sequence[Path | str],
        chunk_size: int | None = None,
        overlap_percent: float | None = None,
        progress: ProgressCallback | None = None,
    ) -> str:
        """Create database *name* from *paths*; return its id.

        Raises
        ------
        AlreadyExistsError
            If *name* is already registered (checked before any file is read).
        UnsupportedFormatError, ExtractionError
            If any file cannot be extracted.  Nothing is persisted.
        """
        report = progress or _noop_progress
        if self._store.exists(name):
            raise AlreadyExistsError(
                message=f"Database '{name}' already exists",
                provider_name="ingestion",
            )
        size, overlap = self._chunk_params(chunk_size, overlap_percent)
        files = self.collect_files(paths)

        documents: dict[str, list[Chunk]] = {}
        hashes: dict[str, str] = {}
        for index, path in enumerate(files, start=1):
            report(f"Processing file {index} of {len(files)}: {path}")
            chunks = await self._process_file(path, size, overlap)
            if not chunks:
                logger.info("file_has_no_text", path=str(path))
                continue
            documents[str(path)] = chunks
            hashes[str(path)] = await asyncio.to_thread(file_sha256, path)

        report(f"Saving database {name}")
        database_id = await self._store.create(name, description, documents, hashes)
        logger.info("ingestion_create_complete", name=name, files=len(files), stored=len(documents))
        return database_id

    async def add_documents(
        self,
        name: str,
        paths: Sequence[Path | str],
        chunk_size: int | None = None,
        overlap_percent: float | None = None,
        progress: ProgressCallback | None = None,
        description: str | None = None,
    ) -> AddDocumentsResult:
        """Add or refresh *paths* in database *name*, best effort.

        Raises
        ------
        StoreNotFoundError
            If *name* is not registered.  Per-file failures are reported
            in the result instead.
        """
        report = progress or _noop_progress
        if not self._store.exists(name):
            raise StoreNotFoundError(
                message=f"Database '{name}' not found",
                provider_name="ingestion",
            )
        size, overlap = self._chunk_params(chunk_size, overlap_percent)
        files = self.collect_files(paths)
        known_hashes = await self._store.get_document_hashes(name)

        log: list[str] = []
        skipped = failed = 0
        documents: dict[str, list[Chunk]] = {}
        hashes: dict[str, str] = {}

        for index, path in enumerate(files, start=1):
            report(f"Processing file {index} of {len(files)}: {path}")
            key = str(path)
            try:
                file_hash = await asyncio.to_thread(file_sha256, path)
                if known_hashes.get(key) == file_hash:
                    skipped += 1
                    log.append(f"Skipped {key} (unchanged)")
                    continue
                chunks = await self._process_file(path, size, overlap)
            except (UnsupportedFormatError, ExtractionError, OSError) as exc:
                failed += 1
                log.append(f"Failed to add {key}: {exc}")
                logger.warning("ingestion_file_failed", name=name, path=key, error=str(exc))
                continue
            if not chunks:
                skipped += 1
                log.append(f"Skipped {key} (no text)")
                continue
            documents[key] = chunks
            hashes[key] = file_hash

        processed = 0
        if documents:
            report(f"Saving database {name}")
            stored = await self._store.add_documents(name, documents, hashes)
            log.extend(stored.log)
            processed = stored.processed
            failed += stored.failed

        if description is not None:
            await self._store.set_description(name, description)

        logger.info(
            "ingestion_add_complete",
            name=name,
            processed=processed,
            skipped=skipped,
            failed=failed,
        )
        return AddDocumentsResult(
            success=failed == 0,
            message=f"Processed {processed}, skipped {skipped}, failed {failed}",
            log=log,
            processed=processed,
            skipped=skipped,
            failed=failed,
        )
