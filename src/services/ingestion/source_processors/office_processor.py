"""DOCX and HTML processors.

DOCX: paragraphs and table rows (cells joined with `` | ``) are read in
document order with python-docx.

HTML: scripts, styles and ``noscript`` blocks are removed with
BeautifulSoup and the remaining text is taken with newline separators.
"""

from __future__ import annotations

import zipfile
from pathlib import Path

import docx
import structlog
from bs4 import BeautifulSoup
from docx.opc.exceptions import PackageNotFoundError
from docx.table import Table
from docx.text.paragraph import Paragraph

from src.models.rag import Document
from src.services.ingestion.source_processors.base import SourceProcessor, make_document, read_text
from src.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)


class DocxProcessor(SourceProcessor):
    extensions = frozenset({".docx"})
    generates_title = True

    def process(self, path: Path) -> list[Document]:
        try:
            document = docx.Document(str(path))
        except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError, OSError) as exc:
            raise ExtractionError(message=f"Cannot read DOCX {path}: {exc}", path=str(path)) from exc

        lines: list[str] = []
        for block in document.iter_inner_content():
            if isinstance(block, Paragraph):
                if block.text.strip():
                    lines.append(block.text)
            elif isinstance(block, Table):
                for row in block.rows:
                    cells = [cell.text.strip() for cell in row.cells]
                    if any(cells):
                        lines.append(" | ".join(cells))

        result = make_document(path, "\n".join(lines))
        return [result] if result.text else []


class HtmlProcessor(SourceProcessor):
    extensions = frozenset({".html", ".htm"})
    generates_title = True

    def process(self, path: Path) -> list[Document]:
        raw = read_text(path)
        if not raw.strip():
            return []
        soup = BeautifulSoup(raw, "html.parser")
        for tag in soup(["script", "style", "noscript"]):
            tag.decompose()
        text = soup.get_text(separator="\n")
        # Strip per-line indentation left over from the markup.
        text = "\n".join(line.strip() for line in text.splitlines())
        result = make_document(path, text)
        logger.debug("html_extracted", path=str(path), chars=len(result.text))
        return [result] if result.text else []
