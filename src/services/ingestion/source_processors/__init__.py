"""Source processors for the ragdesk ingestion pipeline.

Each processor converts one file format into normalized
:class:`~src.models.rag.Document` objects.  These are then fed to the
TextChunker for token-bounded splitting, and onward through the
embed -> store stages.

Available processors and their input formats:

- **TextProcessor**        -- .txt/.yaml/.yml whole-file; .md/.markdown per top-level section
- **CodeProcessor**        -- source files, tagged with their programming language
- **NotebookProcessor**    -- Jupyter notebooks rendered to markdown
- **PDFProcessor**         -- one document per page via PyMuPDF
- **DocxProcessor**        -- Word documents via python-docx
- **HtmlProcessor**        -- HTML via BeautifulSoup
- **JsonProcessor**        -- pretty-printed JSON
- **CsvProcessor**         -- one ``table-row`` document per CSV row
- **SpreadsheetProcessor** -- .xlsx with per-sheet table detection
"""

from src.services.ingestion.source_processors.base import SourceProcessor
from src.services.ingestion.source_processors.code_processor import (
    CodeProcessor,
    NotebookProcessor,
)
from src.services.ingestion.source_processors.office_processor import (
    DocxProcessor,
    HtmlProcessor,
)
from src.services.ingestion.source_processors.pdf_processor import PDFProcessor
from src.services.ingestion.source_processors.spreadsheet_processor import (
    SpreadsheetProcessor,
)
from src.services.ingestion.source_processors.structured_processor import (
    CsvProcessor,
    JsonProcessor,
)
from src.services.ingestion.source_processors.text_processor import TextProcessor

__all__ = [
    "CodeProcessor",
    "CsvProcessor",
    "DocxProcessor",
    "HtmlProcessor",
    "JsonProcessor",
    "NotebookProcessor",
    "PDFProcessor",
    "SourceProcessor",
    "SpreadsheetProcessor",
    "TextProcessor",
]
