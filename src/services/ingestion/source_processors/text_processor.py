"""Plain-text and markdown processor.

Plain text (``.txt``, ``.yaml``, ``.yml``) becomes a single document.
Markdown is split into one document per top-level (``# ``) section so that
each section is chunked on its own and retains a 1-based
``section_index``.
"""

from __future__ import annotations

import re
from pathlib import Path

import structlog

from src.models.rag import Document
from src.services.ingestion.source_processors.base import SourceProcessor, make_document, read_text

logger = structlog.get_logger(logger_name=__name__)

# Zero-width lookahead keeps each heading at the start of its section.
_TOP_LEVEL_HEADING = re.compile(r"(?m)(?=^# )")

MARKDOWN_EXTENSIONS = frozenset({".md", ".markdown"})


def split_markdown_by_headings(text: str) -> list[str]:
    """Split *text* at top-level headings, dropping blank sections."""
    return [section for section in _TOP_LEVEL_HEADING.split(text) if section.strip()]


def markdown_documents(path: Path, text: str) -> list[Document]:
    documents = []
    for index, section in enumerate(split_markdown_by_headings(text), start=1):
        document = make_document(path, section, section_index=index)
        if document.text:
            documents.append(document)
    return documents


class TextProcessor(SourceProcessor):
    extensions = frozenset({".txt", ".yaml", ".yml"}) | MARKDOWN_EXTENSIONS
    generates_title = True

    def process(self, path: Path) -> list[Document]:
        text = read_text(path)
        if not text.strip():
            return []
        if path.suffix.lower() in MARKDOWN_EXTENSIONS:
            documents = markdown_documents(path, text)
        else:
            document = make_document(path, text)
            documents = [document] if document.text else []
        logger.debug("text_extracted", path=str(path), documents=len(documents))
        return documents
