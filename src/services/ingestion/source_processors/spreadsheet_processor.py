"""Spreadsheet (``.xlsx``) processor with per-sheet table detection.

Fixed-size chunking destroys row semantics in tabular data, so each sheet
is first classified:

* **Tabular** -- among the first 10 non-empty rows, the row with the most
  non-empty cells (at least 2) is taken as the header.  A sampled data row
  is *consistent* when its non-empty count is at least 30% of the header's.
  The sheet is tabular when more than half of the sampled data rows are
  consistent.  It then yields an optional ``pre-table`` document (rows
  above the header), one ``table-row`` document per data row pairing each
  value with its column header, and a ``post-table`` document for anything
  after the table ends (three consecutive empty rows).
* **Non-tabular** -- the whole sheet becomes one ``non-table`` document.

Merged cells are expanded so every cell of a merged range carries the
range's value.
"""

from __future__ import annotations

import datetime as dt
import zipfile
from pathlib import Path
from typing import Any

import openpyxl
import structlog
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.worksheet.worksheet import Worksheet

from src.models.rag import Document
from src.services.ingestion.source_processors.base import SourceProcessor, make_document
from src.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

SAMPLE_ROWS = 10
MIN_HEADER_CELLS = 2
CONSISTENCY_RATIO = 0.3
TABLE_RATIO = 0.5
EMPTY_ROWS_END_TABLE = 3

Grid = list[list[str]]


def cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dt.datetime, dt.date, dt.time)):
        return value.isoformat()
    return str(value).strip()


def _non_empty(row: list[str]) -> int:
    return sum(1 for cell in row if cell)


def sheet_grid(ws: Worksheet) -> Grid:
    """Return the sheet's values as strings with merged ranges expanded."""
    grid: Grid = [[cell_text(v) for v in row] for row in ws.iter_rows(values_only=True)]
    for merged in ws.merged_cells.ranges:
        value = grid[merged.min_row - 1][merged.min_col - 1]
        for r in range(merged.min_row - 1, merged.max_row):
            row = grid[r]
            if len(row) < merged.max_col:
                row.extend([""] * (merged.max_col - len(row)))
            for c in range(merged.min_col - 1, merged.max_col):
                row[c] = value
    while grid and not _non_empty(grid[-1]):
        grid.pop()
    return grid


def find_header_row(grid: Grid) -> int | None:
    """Return the header row index if the sheet looks tabular, else ``None``."""
    sample = [i for i, row in enumerate(grid) if _non_empty(row)][:SAMPLE_ROWS]
    if not sample:
        return None
    counts = [_non_empty(grid[i]) for i in sample]
    header_count = max(counts)
    if header_count < MIN_HEADER_CELLS:
        return None
    header_pos = counts.index(header_count)
    data_counts = counts[header_pos + 1 :]
    if not data_counts:
        return None
    consistent = sum(1 for c in data_counts if c >= header_count * CONSISTENCY_RATIO)
    if consistent <= len(data_counts) * TABLE_RATIO:
        return None
    return sample[header_pos]


def _rows_text(rows: Grid) -> str:
    return "\n".join(" ".join(cell for cell in row if cell) for row in rows if _non_empty(row))


class SpreadsheetProcessor(SourceProcessor):
    extensions = frozenset({".xlsx"})

    def process(self, path: Path) -> list[Document]:
        try:
            workbook = openpyxl.load_workbook(str(path), data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, KeyError, ValueError, OSError) as exc:
            raise ExtractionError(message=f"Cannot read spreadsheet {path}: {exc}", path=str(path)) from exc

        documents: list[Document] = []
        try:
            for ws in workbook.worksheets:
                documents.extend(self._process_sheet(path, ws))
        finally:
            workbook.close()
        logger.info("spreadsheet_processed", path=str(path), documents=len(documents))
        return documents

    def _process_sheet(self, path: Path, ws: Worksheet) -> list[Document]:
        grid = sheet_grid(ws)
        if not grid:
            return []
        title = f'"{ws.title}" sheet'
        header_index = find_header_row(grid)

        if header_index is None:
            document = make_document(
                path, _rows_text(grid), title=title, sheet_name=ws.title, content_type="non-table"
            )
            logger.debug("sheet_not_tabular", sheet=ws.title)
            return [document] if document.text else []

        documents: list[Document] = []
        preamble = _rows_text(grid[:header_index])
        if preamble:
            documents.append(
                make_document(path, preamble, title=title, sheet_name=ws.title, content_type="pre-table")
            )

        header = grid[header_index]
        row_index = 0
        empty_run = 0
        end = len(grid)
        for i in range(header_index + 1, len(grid)):
            row = grid[i]
            if not _non_empty(row):
                empty_run += 1
                if empty_run >= EMPTY_ROWS_END_TABLE:
                    end = i + 1
                    break
                continue
            empty_run = 0
            row_index += 1
            lines = []
            for col, value in enumerate(row):
                if not value:
                    continue
                name = header[col] if col < len(header) and header[col] else f"Column {col + 1}"
                lines.append(f"{name}: {value}")
            documents.append(
                make_document(
                    path,
                    "\n".join(lines),
                    title=title,
                    sheet_name=ws.title,
                    row_index=row_index,
                    content_type="table-row",
                )
            )

        trailer = _rows_text(grid[end:])
        if trailer:
            documents.append(
                make_document(path, trailer, title=title, sheet_name=ws.title, content_type="post-table")
            )
        logger.debug("sheet_tabular", sheet=ws.title, header_row=header_index + 1, rows=row_index)
        return documents
