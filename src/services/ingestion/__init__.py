"""Document ingestion pipeline for ragdesk document databases.

Orchestrates the full pipeline: **extract -> title -> chunk -> embed -> store**.

Pipeline stages overview:

1. **Extract** (text_extractor.py / source_processors/) -- Format-specific
   readers convert files (text, markdown, code, notebooks, PDF, Word, HTML,
   JSON, CSV, Excel) into normalized Document objects.

2. **Title** (title_generator.py / TitleGenerator) -- For prose formats the
   chat provider extracts or writes a title from the first 350 characters.

3. **Chunk** (chunker.py / TextChunker) -- Splits documents into
   token-bounded overlapping windows at the coarsest usable boundary.

4. **Embed + Store** (src/services/embedding_store.py) -- Embeds each
   chunk and persists the FAISS index plus its mapping files.

The IngestionService class orchestrates all stages and provides the strict
create_database and best-effort add_documents entry points.
"""

from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.ingestion_service import IngestionService
from src.services.ingestion.text_extractor import TextExtractor
from src.services.ingestion.title_generator import TitleGenerator

__all__ = [
    "IngestionService",
    "TextChunker",
    "TextExtractor",
    "TitleGenerator",
]
