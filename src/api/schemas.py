"""Pydantic request/response schemas for the ragdesk API.

Defines the public contract for all REST endpoints: database management,
document maintenance, metadata generation, retrieval, cancellation and
health.

# ─── HOW SCHEMAS WORK (Junior Developer Guide) ────────────────────────
#
# These Pydantic models define the *shape* of every HTTP request body
# and response body in the API.  FastAPI uses them for:
#
#   1. **Validation** - Incoming JSON is automatically validated against
#      the schema.  Invalid requests get a 422 error with details.
#   2. **Serialization** - Outgoing objects are automatically converted
#      to JSON matching the schema (via response_model=...).
#   3. **Documentation** - FastAPI generates OpenAPI/Swagger docs from
#      these schemas automatically (visible at /docs).
#
# Convention: Request schemas end with "Request", response schemas
# end with "Response".  Domain models from src/models (ChatSettings,
# ChatMessage, RetrievalOutcome, ...) are reused directly where the
# wire shape is the same.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from src.models.chat import ChatMessage, ChatSettings, RetrievalOutcome
from src.models.rag import DatabaseInfo, DocumentInfo


class HealthResponse(BaseModel):
    """Service health and the providers chosen at startup."""

    status: str = "healthy"
    version: str
    chat_provider: str
    embedding_provider: str
    available_chat_providers: list[str] = Field(default_factory=list)
    databases: int = 0


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None


# ---------------------------------------------------------------------------
# Databases
# ---------------------------------------------------------------------------


class DatabaseListResponse(BaseModel):
    databases: list[DatabaseInfo] = Field(default_factory=list)


class CreateDatabaseRequest(BaseModel):
    """Create a database from files or directories on the server's disk."""

    name: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    paths: list[str] = Field(..., min_length=1)
    chunk_size: int | None = Field(default=None, gt=0)
    overlap_percent: float | None = Field(default=None, ge=0, lt=100)


class CreateDatabaseResponse(BaseModel):
    id: str
    name: str
    progress: list[str] = Field(default_factory=list)


class AddDocumentsRequest(BaseModel):
    paths: list[str] = Field(..., min_length=1)
    chunk_size: int | None = Field(default=None, gt=0)
    overlap_percent: float | None = Field(default=None, ge=0, lt=100)
    description: str | None = None


class DocumentListResponse(BaseModel):
    name: str
    documents: list[DocumentInfo] = Field(default_factory=list)


class DeleteDocumentRequest(BaseModel):
    doc_name: str = Field(..., min_length=1)


class DeleteDocumentResponse(BaseModel):
    doc_name: str
    removed_chunks: int


class DatabaseInfoRequest(BaseModel):
    """Suggest a database name and description from file names."""

    file_names: list[str] = Field(..., min_length=1)
    language: str = "en"


class DatabaseInfoResponse(BaseModel):
    dbName: str = ""  # noqa: N815 - wire format shared with existing clients
    dbDescription: str = ""  # noqa: N815


# ---------------------------------------------------------------------------
# Chats
# ---------------------------------------------------------------------------


class ChatNameRequest(BaseModel):
    messages: list[ChatMessage] = Field(..., min_length=1)


class ChatNameResponse(BaseModel):
    name: str = ""


class RetrieveRequest(BaseModel):
    """Run analysis, gating, transformation, search and fusion for one turn."""

    message_id: str = Field(..., min_length=1)
    chat: ChatSettings
    messages: list[ChatMessage] = Field(..., min_length=1)


class RetrieveResponse(BaseModel):
    message_id: str
    status: str = "completed"
    retrieval: RetrievalOutcome | None = None


class AnswerRequest(BaseModel):
    """First (and only) frame sent by the client on ``/ws/chat/{message_id}``."""

    chat: ChatSettings
    messages: list[ChatMessage] = Field(default_factory=list)
    retrieval: RetrievalOutcome | None = None


class CancelResponse(BaseModel):
    message_id: str
    cancelled: bool
