"""Shared pytest fixtures for the ragdesk test suite."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
import structlog

from src.config.settings import Settings
from src.services.embedding_store import EmbeddingStore
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.ingestion_service import IngestionService
from src.services.ingestion.text_extractor import TextExtractor
from tests.fakes import FakeEmbeddingProvider, WhitespaceTokenCounter

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _isolate_logging() -> Iterator[None]:
    """Undo per-test logging configuration (e.g. CLI binding to capsys streams)."""
    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    level = root_logger.level
    yield
    structlog.reset_defaults()
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from any .env file, storing data under tmp_path."""
    return Settings(
        _env_file=None,
        data_dir=str(tmp_path / "data"),
        chunk_size=64,
        chunk_overlap_percent=25,
        folder_depth=3,
    )


@pytest.fixture
def token_counter() -> WhitespaceTokenCounter:
    return WhitespaceTokenCounter()


@pytest.fixture
def chunker(token_counter: WhitespaceTokenCounter) -> TextChunker:
    return TextChunker(token_counter)


@pytest.fixture
def embedding_provider() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def store(settings: Settings, embedding_provider: FakeEmbeddingProvider) -> EmbeddingStore:
    return EmbeddingStore(settings.databases_dir, embedding_provider)


@pytest.fixture
def ingestion(
    settings: Settings,
    chunker: TextChunker,
    store: EmbeddingStore,
) -> IngestionService:
    """Ingestion without title generation (file-name titles)."""
    return IngestionService(
        extractor=TextExtractor(),
        chunker=chunker,
        store=store,
        settings=settings,
    )


@pytest.fixture
def docs_dir(tmp_path: Path) -> Path:
    """A small folder of prose files about unrelated subjects."""
    root = tmp_path / "docs"
    root.mkdir()
    (root / "printer.txt").write_text(
        "The printer must be reset after replacing the toner cartridge. "
        "Hold the power button for ten seconds until the status light blinks.\n\n"
        "Paper jams are cleared from the rear tray. Never pull paper from the front.",
        encoding="utf-8",
    )
    (root / "holidays.md").write_text(
        "# Holidays\n\nEmployees receive twenty five vacation days per year.\n\n"
        "# Sick leave\n\nSick leave requires a doctor's note after three days.",
        encoding="utf-8",
    )
    nested = root / "nested"
    nested.mkdir()
    (nested / "coffee.txt").write_text(
        "The coffee machine on the third floor is descaled every Friday morning.",
        encoding="utf-8",
    )
    (root / "ignored.bin").write_bytes(b"\x00\x01\x02")
    return root
