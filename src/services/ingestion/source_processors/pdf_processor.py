"""Source processor for PDF files.

Reads PDF files using PyMuPDF (fitz) and extracts text page-by-page.
Each non-empty page becomes one :class:`~src.models.rag.Document` carrying
``page_number`` (1-based) and ``total_pages``, so citations can point at
the page an answer came from.

Scanned PDFs without an embedded text layer produce no documents; OCR is
not attempted.
"""

from __future__ import annotations

from pathlib import Path

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from src.models.rag import Document
from src.services.ingestion.source_processors.base import SourceProcessor, make_document
from src.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)


class PDFProcessor(SourceProcessor):
    """Processes PDF files into one document per page."""

    extensions = frozenset({".pdf"})
    generates_title = True

    def process(self, path: Path) -> list[Document]:
        pages = self._extract_pages(path)
        total_pages = len(pages)
        documents: list[Document] = []
        for page_number, text in enumerate(pages, start=1):
            if not text.strip():
                continue
            document = make_document(path, text, page_number=page_number, total_pages=total_pages)
            if document.text:
                documents.append(document)

        logger.info(
            "pdf_processed",
            path=str(path),
            total_pages=total_pages,
            text_pages=len(documents),
        )
        return documents

    @staticmethod
    def _extract_pages(path: Path) -> list[str]:
        """Return the text of every page, in order."""
        try:
            with fitz.open(str(path)) as doc:
                return [page.get_text("text") for page in doc]
        except (RuntimeError, ValueError) as exc:
            # PyMuPDF raises FileDataError (a RuntimeError) for corrupt files.
            raise ExtractionError(message=f"Cannot read PDF {path}: {exc}", path=str(path)) from exc
