"""JSON and CSV processors.

JSON is re-serialized pretty-printed (``indent=2``) so that its nesting
survives whitespace normalization and gives the chunker line breaks to
split on.

CSV files yield one document per non-empty row, rendered as
``column: value`` lines with a 1-based ``row_index``.  Rows are tagged
``content_type="table-row"`` and are never merged or re-chunked.
"""

from __future__ import annotations

import csv
import io
import json
from pathlib import Path

import structlog

from src.models.rag import Document
from src.services.ingestion.source_processors.base import SourceProcessor, make_document, read_text
from src.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

TABLE_ROW = "table-row"


class JsonProcessor(SourceProcessor):
    extensions = frozenset({".json"})

    def process(self, path: Path) -> list[Document]:
        raw = read_text(path)
        if not raw.strip():
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ExtractionError(message=f"Invalid JSON in {path}: {exc}", path=str(path)) from exc
        document = make_document(path, json.dumps(data, indent=2, ensure_ascii=False))
        return [document] if document.text else []


class CsvProcessor(SourceProcessor):
    extensions = frozenset({".csv"})

    def process(self, path: Path) -> list[Document]:
        raw = read_text(path)
        if not raw.strip():
            return []
        try:
            rows = list(csv.DictReader(io.StringIO(raw)))
        except csv.Error as exc:
            raise ExtractionError(message=f"Malformed CSV in {path}: {exc}", path=str(path)) from exc

        documents: list[Document] = []
        row_index = 0
        for row in rows:
            values = {k: v for k, v in row.items() if k is not None}
            if not any((v or "").strip() for v in values.values()):
                continue
            row_index += 1
            text = "\n".join(f"{key}: {value or ''}" for key, value in values.items())
            document = make_document(path, text, row_index=row_index, content_type=TABLE_ROW)
            if document.text:
                documents.append(document)
        logger.debug("csv_extracted", path=str(path), rows=len(documents))
        return documents
