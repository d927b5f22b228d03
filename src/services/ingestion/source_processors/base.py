"""Shared helpers for the per-format source processors.

Every processor turns one file into one or more normalized
:class:`~src.models.rag.Document` objects and tags them with the same base
metadata (``source``, ``title``, ``timestamp``).  Library failures are
wrapped in :class:`~src.utils.errors.ExtractionError` carrying the path, so
the ingestion service can decide whether one bad file aborts the batch.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, ClassVar

from src.models.rag import Document
from src.utils.errors import ExtractionError
from src.utils.text_normalizer import decode_bytes, normalize_text


def base_metadata(path: Path, title: str | None = None, **extra: Any) -> dict[str, Any]:
    """Return the metadata every extracted document carries."""
    metadata: dict[str, Any] = {
        "source": str(path),
        "title": title or path.name,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    metadata.update({k: v for k, v in extra.items() if v is not None})
    return metadata


def read_text(path: Path) -> str:
    """Read *path* as text using the detected encoding (not yet normalized)."""
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise ExtractionError(message=f"Cannot read {path}: {exc}", path=str(path)) from exc
    return decode_bytes(raw)


def make_document(path: Path, text: str, **metadata: Any) -> Document:
    return Document(path=str(path), text=normalize_text(text), metadata=base_metadata(path, **metadata))


class SourceProcessor(ABC):
    """One file format's extraction strategy."""

    #: Lower-case extensions (with the dot) this processor handles.
    extensions: ClassVar[frozenset[str]] = frozenset()

    #: Whether the document title should be generated from the content
    #: rather than taken from the file name.
    generates_title: ClassVar[bool] = False

    @abstractmethod
    def process(self, path: Path) -> list[Document]:
        """Extract *path* into documents; empty files yield ``[]``."""
