"""Dispatch a file to the source processor registered for its extension."""

from __future__ import annotations

from pathlib import Path

import structlog

from src.models.rag import Document
from src.services.ingestion.source_processors import (
    CodeProcessor,
    CsvProcessor,
    DocxProcessor,
    HtmlProcessor,
    JsonProcessor,
    NotebookProcessor,
    PDFProcessor,
    SourceProcessor,
    SpreadsheetProcessor,
    TextProcessor,
)
from src.utils.errors import ExtractionError, RagDeskError, UnsupportedFormatError

logger = structlog.get_logger(logger_name=__name__)


def default_processors() -> list[SourceProcessor]:
    return [
        TextProcessor(),
        CodeProcessor(),
        NotebookProcessor(),
        PDFProcessor(),
        DocxProcessor(),
        HtmlProcessor(),
        JsonProcessor(),
        CsvProcessor(),
        SpreadsheetProcessor(),
    ]


class TextExtractor:
    """Maps lower-cased file extensions to processors."""

    def __init__(self, processors: list[SourceProcessor] | None = None) -> None:
        self._by_extension: dict[str, SourceProcessor] = {}
        for processor in processors or default_processors():
            for extension in processor.extensions:
                self._by_extension[extension] = processor

    @property
    def supported_extensions(self) -> frozenset[str]:
        return frozenset(self._by_extension)

    def supports(self, path: Path) -> bool:
        return path.suffix.lower() in self._by_extension

    def generates_title(self, path: Path) -> bool:
        """Whether documents from *path* should get an LLM-generated title."""
        processor = self._by_extension.get(path.suffix.lower())
        return bool(processor and processor.generates_title)

    def extract(self, path: Path | str) -> list[Document]:
        """Return the normalized documents of *path*.

        Raises
        ------
        UnsupportedFormatError
            If no processor handles the extension.
        ExtractionError
            If the processor cannot read the file.  Unexpected processor
            failures are re-raised as this error.
        """
        path = Path(path)
        processor = self._by_extension.get(path.suffix.lower())
        if processor is None:
            raise UnsupportedFormatError(
                message=f"Unsupported file format: {path.suffix or path.name}",
                path=str(path),
            )
        try:
            documents = processor.process(path)
        except (RagDeskError, OSError):
            raise
        except Exception as exc:
            logger.warning(
                "file_extraction_crashed",
                path=str(path),
                processor=type(processor).__name__,
                error=repr(exc),
            )
            raise ExtractionError(
                message=f"Could not extract {path.name}: {exc}", path=str(path)
            ) from exc
        logger.info(
            "file_extracted",
            path=str(path),
            processor=type(processor).__name__,
            documents=len(documents),
        )
        return documents
