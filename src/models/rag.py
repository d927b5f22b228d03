"""RAG data models for ragdesk document databases.

Defines Pydantic v2 models for extracted documents, chunks, retrieval
results, and database bookkeeping.  Value objects use frozen config so a
chunk that has been embedded cannot drift from its stored vector.

Lifecycle for junior developers:

    1. EXTRACTION: a file becomes one or more :class:`Document` objects
       (one per page, per CSV row, per markdown section, ...).
    2. CHUNKING: documents are split into token-bounded :class:`Chunk`
       objects, each with a fresh ``chunk_id``.
    3. STORAGE: chunks are embedded and written to a named database; the
       database's ``docNameToChunkIds`` mapping records which chunk ids
       belong to which file.
    4. RETRIEVAL: each transformed query yields :class:`SearchResult`
       objects; fusion merges them into :class:`FusedResult` objects,
       which are what the user sees as citations.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Document(BaseModel):
    """Normalized text extracted from one file (or one page/row/section of it)."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(description="Absolute or user-supplied path of the source file.")
    text: str = Field(description="Normalized extracted text.")
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description=(
            "Structural metadata: source, title, timestamp, and optionally "
            "section_index, page_number, total_pages, row_index, content_type, "
            "language, sheet_name."
        ),
    )

    @property
    def content_type(self) -> str | None:
        return self.metadata.get("content_type")


class Chunk(BaseModel):
    """A token-bounded fragment of a document; the unit of embedding and retrieval."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str = Field(description="uuid4 hex; generated once, never reused.")
    page_content: str = Field(description="The chunk's text.")
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Copied from the parent document, plus chunk_id.",
    )


class SearchResult(BaseModel):
    """One nearest-neighbour hit for one query, before fusion."""

    model_config = ConfigDict(frozen=True)

    page_content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    score: float = Field(description="Raw inner-product similarity.")


class FusedResult(BaseModel):
    """A deduplicated, re-scored result returned to the caller and cited to the user."""

    model_config = ConfigDict(frozen=True)

    page_content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    combined_score: float
    count: int = Field(default=1, ge=1, description="Number of queries that surfaced this content.")


class DatabaseInfo(BaseModel):
    """A registry entry."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""


class DocumentInfo(BaseModel):
    """A document tracked by a database."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="File name without directories.")
    path: str = Field(description="Key under which the document's chunk ids are stored.")
    chunk_count: int = 0


class AddDocumentsResult(BaseModel):
    """Outcome of a best-effort add: what happened to every file."""

    success: bool
    message: str = ""
    log: list[str] = Field(default_factory=list)
    processed: int = 0
    skipped: int = 0
    failed: int = 0
