"""Source-code and Jupyter notebook processor.

Code files become one document tagged with the programming ``language``
so the chunker can split on class and function boundaries first.  The
title is the file name.

Notebooks are rendered to markdown (markdown cells verbatim, code cells
fenced with the kernel language) and then split at top-level headings
like any markdown file.
"""

from __future__ import annotations

import json
from pathlib import Path

import structlog

from src.models.rag import Document
from src.services.ingestion.source_processors.base import SourceProcessor, make_document, read_text
from src.services.ingestion.source_processors.text_processor import markdown_documents
from src.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

LANGUAGE_BY_EXTENSION: dict[str, str] = {
    ".cpp": "cpp",
    ".go": "go",
    ".java": "java",
    ".js": "js",
    ".php": "php",
    ".proto": "proto",
    ".py": "python",
    ".rst": "rst",
    ".rb": "ruby",
    ".rs": "rust",
    ".scala": "scala",
    ".swift": "swift",
    ".tex": "latex",
}


class CodeProcessor(SourceProcessor):
    extensions = frozenset(LANGUAGE_BY_EXTENSION)

    def process(self, path: Path) -> list[Document]:
        text = read_text(path)
        if not text.strip():
            return []
        language = LANGUAGE_BY_EXTENSION[path.suffix.lower()]
        document = make_document(path, text, language=language)
        return [document] if document.text else []


def _cell_source(cell: dict) -> str:
    source = cell.get("source", "")
    return "".join(source) if isinstance(source, list) else str(source)


def notebook_to_markdown(notebook: dict) -> str:
    """Render the cells of a parsed ``.ipynb`` as one markdown string."""
    language = (
        notebook.get("metadata", {}).get("kernelspec", {}).get("language")
        or notebook.get("metadata", {}).get("language_info", {}).get("name")
        or "python"
    )
    parts: list[str] = []
    for cell in notebook.get("cells", []):
        content = _cell_source(cell)
        if cell.get("cell_type") == "markdown":
            parts.append(content)
        elif cell.get("cell_type") == "code":
            parts.append(f"```{language}\n{content}\n```")
    return "\n\n".join(parts)


class NotebookProcessor(SourceProcessor):
    extensions = frozenset({".ipynb"})
    generates_title = True

    def process(self, path: Path) -> list[Document]:
        raw = read_text(path)
        if not raw.strip():
            return []
        try:
            notebook = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ExtractionError(message=f"Invalid notebook JSON in {path}: {exc}", path=str(path)) from exc
        if not isinstance(notebook, dict) or not isinstance(notebook.get("cells", []), list):
            raise ExtractionError(message=f"Not a Jupyter notebook: {path}", path=str(path))
        documents = markdown_documents(path, notebook_to_markdown(notebook))
        logger.debug("notebook_extracted", path=str(path), documents=len(documents))
        return documents
