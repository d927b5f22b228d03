"""Unit tests for EmbeddingStore, DatabaseRegistry and FaissIndex.

Embeddings come from FakeEmbeddingProvider (hashed bags of words), so
chunks sharing words with a query are its nearest neighbours.
"""

from __future__ import annotations

import asyncio
import json
import time
import uuid
from pathlib import Path

import pytest

from src.models.rag import Chunk
from src.providers.vector_store.faiss_index import FaissIndex
from src.services.embedding_store import MAPPING_FILE, EmbeddingStore, normalize_vectors
from src.utils.errors import (
    AlreadyExistsError,
    EmbeddingProviderError,
    StoreCorruptError,
    StoreError,
    StoreNotFoundError,
)
from tests.fakes import FakeEmbeddingProvider

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _chunks(source: str, *texts: str) -> list[Chunk]:
    chunks = []
    for text in texts:
        chunk_id = uuid.uuid4().hex
        chunks.append(
            Chunk(chunk_id=chunk_id, page_content=text, metadata={"source": source, "chunk_id": chunk_id})
        )
    return chunks


PRINTER = ("Reset the printer after replacing the toner cartridge.", "Clear paper jams from the rear tray.")
HOLIDAYS = ("Employees receive twenty five vacation days.", "Sick leave needs a doctor note.", "Holidays carry over.")


@pytest.fixture
async def handbook(store: EmbeddingStore) -> dict[str, list[Chunk]]:
    documents = {
        "/docs/printer.txt": _chunks("/docs/printer.txt", *PRINTER),
        "/docs/holidays.md": _chunks("/docs/holidays.md", *HOLIDAYS),
    }
    await store.create("handbook", "Office handbook", documents, hashes={"/docs/printer.txt": "abc"})
    return documents


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


class TestCreate:
    async def test_registers_database_and_writes_files(
        self, store: EmbeddingStore, handbook: dict, settings
    ) -> None:
        [info] = store.list_databases()
        assert info.name == "handbook"
        assert info.description == "Office handbook"

        directory = settings.databases_dir / info.id
        for filename in ("index.faiss", "docstore.json", MAPPING_FILE, "docNameToHash.json"):
            assert (directory / filename).exists()

        mapping = json.loads((directory / MAPPING_FILE).read_text(encoding="utf-8"))
        assert mapping == {doc: [c.chunk_id for c in chunks] for doc, chunks in handbook.items()}

    async def test_duplicate_name_rejected(self, store: EmbeddingStore, handbook: dict) -> None:
        with pytest.raises(AlreadyExistsError):
            await store.create("handbook", "", {"/docs/x.txt": _chunks("/docs/x.txt", "x")})
        assert len(store.list_databases()) == 1

    async def test_embedding_failure_rolls_back(self, settings) -> None:
        store = EmbeddingStore(settings.databases_dir, FakeEmbeddingProvider(fail_on="boom"))
        documents = {
            "/docs/a.txt": _chunks("/docs/a.txt", "all fine here"),
            "/docs/b.txt": _chunks("/docs/b.txt", "this one goes boom"),
        }
        with pytest.raises(EmbeddingProviderError):
            await store.create("broken", "", documents)

        assert store.list_databases() == []
        assert not store.exists("broken")
        assert [p for p in settings.databases_dir.iterdir() if p.is_dir()] == []

    async def test_ids_unique_for_quick_successive_creates(self, store: EmbeddingStore) -> None:
        await store.create("one", "", {"/a": _chunks("/a", "alpha")})
        await store.create("two", "", {"/b": _chunks("/b", "beta")})
        ids = [info.id for info in store.list_databases()]
        assert len(set(ids)) == 2


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


class TestSearch:
    async def test_nearest_chunk_first(self, store: EmbeddingStore, handbook: dict) -> None:
        results = await store.search("handbook", "toner cartridge printer", 3)

        assert len(results) == 3
        assert results[0].page_content == PRINTER[0]
        assert results[0].metadata["source"] == "/docs/printer.txt"
        scores = [r.score for r in results]
        assert scores == sorted(scores, reverse=True)

    async def test_k_larger_than_index(self, store: EmbeddingStore, handbook: dict) -> None:
        results = await store.search("handbook", "anything", 50)
        assert len(results) == len(PRINTER) + len(HOLIDAYS)

    async def test_unknown_database(self, store: EmbeddingStore) -> None:
        with pytest.raises(StoreNotFoundError):
            await store.search("missing", "query", 3)

    async def test_search_loads_into_cache(self, store: EmbeddingStore, handbook: dict) -> None:
        assert not store.cache.is_loaded("handbook")
        await store.search("handbook", "vacation", 1)
        assert store.cache.is_loaded("handbook")

    async def test_survives_restart(self, settings, handbook: dict) -> None:
        reopened = EmbeddingStore(settings.databases_dir, FakeEmbeddingProvider())
        results = await reopened.search("handbook", "vacation days", 1)
        assert results[0].page_content == HOLIDAYS[0]


# ---------------------------------------------------------------------------
# Add / replace / delete
# ---------------------------------------------------------------------------


class TestMutations:
    async def test_add_new_document(self, store: EmbeddingStore, handbook: dict) -> None:
        new = {"/docs/coffee.txt": _chunks("/docs/coffee.txt", "The coffee machine is descaled on Friday.")}
        await store.search("handbook", "warm cache", 1)

        result = await store.add_documents("handbook", new)

        assert result.success
        assert result.processed == 1
        assert result.log == ["Added /docs/coffee.txt (1 chunks)"]
        assert not store.cache.is_loaded("handbook")
        hits = await store.search("handbook", "coffee machine descaled", 1)
        assert hits[0].metadata["source"] == "/docs/coffee.txt"

    async def test_replace_uses_disjoint_ids(self, store: EmbeddingStore, handbook: dict) -> None:
        old_ids = {c.chunk_id for c in handbook["/docs/printer.txt"]}
        replacement = _chunks("/docs/printer.txt", "The printer now has a touch screen.")

        result = await store.add_documents("handbook", {"/docs/printer.txt": replacement})

        assert result.log == ["Replaced /docs/printer.txt (1 chunks)"]
        db = await store.cache.get_or_load("handbook")
        assert db.doc_name_to_chunk_ids["/docs/printer.txt"] == [replacement[0].chunk_id]
        assert old_ids.isdisjoint(db.index.chunk_ids())
        mapped = {cid for ids in db.doc_name_to_chunk_ids.values() for cid in ids}
        assert mapped == db.index.chunk_ids()

    async def test_add_is_best_effort(
        self, store: EmbeddingStore, handbook: dict, embedding_provider: FakeEmbeddingProvider
    ) -> None:
        embedding_provider.fail_on = "boom"
        documents = {
            "/docs/good.txt": _chunks("/docs/good.txt", "a perfectly good file"),
            "/docs/bad.txt": _chunks("/docs/bad.txt", "this file goes boom"),
        }

        result = await store.add_documents("handbook", documents)

        assert not result.success
        assert (result.processed, result.failed) == (1, 1)
        assert result.message == "Added 1 document(s), 1 failed"
        assert any(line.startswith("Failed to add /docs/bad.txt") for line in result.log)
        names = {d.path for d in await store.list_documents("handbook")}
        assert "/docs/good.txt" in names
        assert "/docs/bad.txt" not in names

    async def test_failed_replacement_keeps_previous_version(
        self, store: EmbeddingStore, handbook: dict, embedding_provider: FakeEmbeddingProvider
    ) -> None:
        embedding_provider.fail_on = "boom"
        await store.add_documents("handbook", {"/docs/printer.txt": _chunks("/docs/printer.txt", "boom")})

        db = await store.cache.get_or_load("handbook")
        assert db.doc_name_to_chunk_ids["/docs/printer.txt"] == [
            c.chunk_id for c in handbook["/docs/printer.txt"]
        ]

    async def test_delete_document_removes_exactly_its_chunks(
        self, store: EmbeddingStore, handbook: dict
    ) -> None:
        removed = await store.delete_document("handbook", "/docs/holidays.md")

        assert removed == len(HOLIDAYS)
        documents = await store.list_documents("handbook")
        assert [(d.name, d.path, d.chunk_count) for d in documents] == [
            ("printer.txt", "/docs/printer.txt", len(PRINTER))
        ]
        db = await store.cache.get_or_load("handbook")
        assert db.index.chunk_ids() == {c.chunk_id for c in handbook["/docs/printer.txt"]}
        assert "/docs/printer.txt" in db.doc_name_to_hash

    async def test_delete_unknown_document(self, store: EmbeddingStore, handbook: dict) -> None:
        assert await store.delete_document("handbook", "/docs/nope.txt") == 0

    async def test_delete_database_keeps_others(self, store: EmbeddingStore, handbook: dict, settings) -> None:
        await store.create("other", "Unrelated", {"/x": _chunks("/x", "unrelated text")})
        handbook_id = store.registry.get("handbook").id

        await store.delete("handbook")

        assert [(i.name, i.description) for i in store.list_databases()] == [("other", "Unrelated")]
        assert not (settings.databases_dir / handbook_id).exists()
        with pytest.raises(StoreNotFoundError):
            await store.delete("handbook")

    async def test_delete_database_releases_its_lock(self, store: EmbeddingStore, handbook: dict) -> None:
        await store.search("handbook", "printer", 1)
        await store.delete_document("handbook", "/docs/holidays.md")
        assert "handbook" in store.cache.tracked_names()

        await store.delete("handbook")

        assert "handbook" not in store.cache.tracked_names()


# ---------------------------------------------------------------------------
# Concurrent readers and writers
# ---------------------------------------------------------------------------


class TestConcurrency:
    async def test_slow_load_does_not_cache_files_older_than_a_write(
        self, store: EmbeddingStore, handbook: dict, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        original_load = FaissIndex.load
        loads: list[Path] = []

        def slow_first_load(directory: Path) -> FaissIndex:
            index = original_load(directory)
            loads.append(directory)
            if len(loads) == 1:
                # Files are already read; a write may land before this returns.
                time.sleep(0.3)
            return index

        monkeypatch.setattr(FaissIndex, "load", staticmethod(slow_first_load))

        reader = asyncio.create_task(store.search("handbook", "toner cartridge printer", 10))
        await asyncio.sleep(0.05)
        removed = await store.delete_document("handbook", "/docs/printer.txt")
        await reader

        assert removed == len(PRINTER)
        results = await store.search("handbook", "toner cartridge printer", 10)
        assert {r.page_content for r in results} == set(HOLIDAYS)
        db = await store.cache.get_or_load("handbook")
        assert "/docs/printer.txt" not in db.doc_name_to_chunk_ids

    async def test_concurrent_misses_share_one_load(
        self, store: EmbeddingStore, handbook: dict, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        original_load = FaissIndex.load
        loads: list[Path] = []

        def counting_load(directory: Path) -> FaissIndex:
            loads.append(directory)
            return original_load(directory)

        monkeypatch.setattr(FaissIndex, "load", staticmethod(counting_load))

        first, second = await asyncio.gather(
            store.cache.get_or_load("handbook"), store.cache.get_or_load("handbook")
        )

        assert first is second
        assert len(loads) == 1


# ---------------------------------------------------------------------------
# Registry and corruption
# ---------------------------------------------------------------------------


class TestRegistry:
    async def test_set_description(self, store: EmbeddingStore, handbook: dict) -> None:
        await store.set_description("handbook", "Updated")
        assert store.get_description("handbook") == "Updated"

    async def test_registry_file_layout(self, store: EmbeddingStore, handbook: dict) -> None:
        raw = json.loads(store.registry.path.read_text(encoding="utf-8"))
        [db_id] = raw["databases"]
        assert raw["databases"][db_id] == "handbook"
        assert raw["descriptions"][db_id] == "Office handbook"

    async def test_missing_mapping_is_corrupt(self, store: EmbeddingStore, handbook: dict, settings) -> None:
        directory = settings.databases_dir / store.registry.get("handbook").id
        (directory / MAPPING_FILE).unlink()
        store.cache.clear()

        with pytest.raises(StoreCorruptError):
            await store.search("handbook", "anything", 1)

    async def test_document_hashes(self, store: EmbeddingStore, handbook: dict) -> None:
        assert await store.get_document_hashes("handbook") == {"/docs/printer.txt": "abc"}


# ---------------------------------------------------------------------------
# FaissIndex
# ---------------------------------------------------------------------------


class TestFaissIndex:
    def test_rejects_dimension_mismatch(self) -> None:
        index = FaissIndex(4)
        with pytest.raises(StoreError):
            index.add(_chunks("/a", "x"), [[1.0, 0.0]])

    def test_rejects_duplicate_chunk_ids(self) -> None:
        index = FaissIndex(2)
        chunks = _chunks("/a", "x")
        index.add(chunks, [[1.0, 0.0]])
        with pytest.raises(StoreError):
            index.add(chunks, [[0.0, 1.0]])

    def test_delete_ignores_unknown_ids(self) -> None:
        index = FaissIndex(2)
        chunks = _chunks("/a", "x", "y")
        index.add(chunks, [[1.0, 0.0], [0.0, 1.0]])

        assert index.delete([chunks[0].chunk_id, "unknown"]) == 1
        assert len(index) == 1
        [(hit, score)] = index.search([0.0, 1.0], 5)
        assert hit.chunk_id == chunks[1].chunk_id
        assert score == pytest.approx(1.0)

    def test_save_and_load(self, tmp_path: Path) -> None:
        index = FaissIndex(2)
        chunks = _chunks("/a", "x", "y")
        index.add(chunks, [[1.0, 0.0], [0.0, 1.0]])
        index.delete([chunks[0].chunk_id])
        index.save(tmp_path)

        loaded = FaissIndex.load(tmp_path)

        assert loaded.chunk_ids() == {chunks[1].chunk_id}
        fresh = _chunks("/a", "z")
        loaded.add(fresh, [[0.6, 0.8]])
        assert len(loaded) == 2

    def test_missing_files_are_corrupt(self, tmp_path: Path) -> None:
        with pytest.raises(StoreCorruptError):
            FaissIndex.load(tmp_path)


def test_normalize_vectors_handles_zero_rows() -> None:
    rows = normalize_vectors([[3.0, 4.0], [0.0, 0.0]])
    assert rows[0] == pytest.approx([0.6, 0.8])
    assert rows[1] == [0.0, 0.0]
