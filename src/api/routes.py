"""FastAPI API routes for ragdesk.

Provides REST endpoints for database management, document maintenance,
metadata generation, the retrieval stage of a chat turn, cancellation and
health checks.  The streamed answer itself goes over the WebSocket in
``src/api/websocket.py``.  Service dependencies are resolved from
``app.state`` via FastAPI's ``Depends`` using the ``Annotated`` pattern.

# ─── API ROUTE MAP (Junior Developer Guide) ───────────────────────────
#
# Endpoint                                   Method  Description
# ─────────────────────────────────────────────────────────────────────
# /api/v1/health                             GET     Health + provider names
# /api/v1/databases                          GET     List registered databases
# /api/v1/databases                          POST    Create a database (strict)
# /api/v1/databases/info                     POST    Suggest name + description
# /api/v1/databases/{name}                   DELETE  Delete a database
# /api/v1/databases/{name}/documents         GET     List documents
# /api/v1/databases/{name}/documents         POST    Add documents (best effort)
# /api/v1/databases/{name}/documents/delete  POST    Delete one document
# /api/v1/chats/name                         POST    Generate a chat title
# /api/v1/chats/retrieve                     POST    Analyze → gate → search → fuse
# /api/v1/messages/{message_id}/cancel       POST    Cancel a running request
#
# ERRORS:
# Routes let RagDeskError propagate; ErrorHandlingMiddleware turns it
# into an ErrorResponse with 404 / 409 / 422 / 500.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Request

from src.api.schemas import (
    AddDocumentsRequest,
    CancelResponse,
    ChatNameRequest,
    ChatNameResponse,
    CreateDatabaseRequest,
    CreateDatabaseResponse,
    DatabaseInfoRequest,
    DatabaseInfoResponse,
    DatabaseListResponse,
    DeleteDocumentRequest,
    DeleteDocumentResponse,
    DocumentListResponse,
    HealthResponse,
    RetrieveRequest,
    RetrieveResponse,
)
from src.config.settings import Settings
from src.models.rag import AddDocumentsResult
from src.pipeline.orchestrator import ChatPipeline
from src.services.embedding_store import EmbeddingStore
from src.services.ingestion.ingestion_service import IngestionService
from src.services.rag.metadata_generator import MetadataGenerator
from src.utils.errors import CancelledError
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

# All routes in this file are prefixed with /api/v1.
router = APIRouter(prefix="/api/v1")

_VERSION = "0.1.0"


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _get_store(request: Request) -> EmbeddingStore:
    return request.app.state.store


def _get_ingestion(request: Request) -> IngestionService:
    return request.app.state.ingestion


def _get_pipeline(request: Request) -> ChatPipeline:
    return request.app.state.pipeline


def _get_metadata(request: Request) -> MetadataGenerator:
    return request.app.state.metadata_generator


SettingsDep = Annotated[Settings, Depends(_get_settings)]
StoreDep = Annotated[EmbeddingStore, Depends(_get_store)]
IngestionDep = Annotated[IngestionService, Depends(_get_ingestion)]
PipelineDep = Annotated[ChatPipeline, Depends(_get_pipeline)]
MetadataDep = Annotated[MetadataGenerator, Depends(_get_metadata)]


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse)
async def health(request: Request, settings: SettingsDep, store: StoreDep) -> HealthResponse:
    return HealthResponse(
        version=_VERSION,
        chat_provider=request.app.state.chat_provider.get_provider_name(),
        embedding_provider=request.app.state.embedding_provider.get_provider_name(),
        available_chat_providers=settings.get_available_llm_providers(),
        databases=len(store.list_databases()),
    )


# ---------------------------------------------------------------------------
# Databases
# ---------------------------------------------------------------------------


@router.get("/databases", response_model=DatabaseListResponse)
async def list_databases(store: StoreDep) -> DatabaseListResponse:
    return DatabaseListResponse(databases=store.list_databases())


@router.post("/databases", response_model=CreateDatabaseResponse, status_code=201)
async def create_database(
    body: CreateDatabaseRequest,
    ingestion: IngestionDep,
) -> CreateDatabaseResponse:
    """Create a database from paths readable by the server.  All-or-nothing."""
    progress: list[str] = []
    database_id = await ingestion.create_database(
        body.name,
        body.description,
        body.paths,
        chunk_size=body.chunk_size,
        overlap_percent=body.overlap_percent,
        progress=progress.append,
    )
    return CreateDatabaseResponse(id=database_id, name=body.name, progress=progress)


@router.post("/databases/info", response_model=DatabaseInfoResponse)
async def generate_database_info(
    body: DatabaseInfoRequest,
    metadata: MetadataDep,
) -> DatabaseInfoResponse:
    info = await metadata.generate_db_info(body.file_names, body.language)
    return DatabaseInfoResponse(**info)


@router.delete("/databases/{name}", status_code=204)
async def delete_database(name: str, store: StoreDep) -> None:
    await store.delete(name)


@router.get("/databases/{name}/documents", response_model=DocumentListResponse)
async def list_documents(name: str, store: StoreDep) -> DocumentListResponse:
    return DocumentListResponse(name=name, documents=await store.list_documents(name))


@router.post("/databases/{name}/documents", response_model=AddDocumentsResult)
async def add_documents(
    name: str,
    body: AddDocumentsRequest,
    ingestion: IngestionDep,
) -> AddDocumentsResult:
    """Add or refresh documents.  Per-file failures are reported in ``log``."""
    return await ingestion.add_documents(
        name,
        body.paths,
        chunk_size=body.chunk_size,
        overlap_percent=body.overlap_percent,
        description=body.description,
    )


@router.post("/databases/{name}/documents/delete", response_model=DeleteDocumentResponse)
async def delete_document(
    name: str,
    body: DeleteDocumentRequest,
    store: StoreDep,
) -> DeleteDocumentResponse:
    removed = await store.delete_document(name, body.doc_name)
    return DeleteDocumentResponse(doc_name=body.doc_name, removed_chunks=removed)


# ---------------------------------------------------------------------------
# Chats
# ---------------------------------------------------------------------------


@router.post("/chats/name", response_model=ChatNameResponse)
async def generate_chat_name(body: ChatNameRequest, metadata: MetadataDep) -> ChatNameResponse:
    return ChatNameResponse(name=await metadata.generate_chat_name(body.messages))


@router.post("/chats/retrieve", response_model=RetrieveResponse)
async def retrieve(body: RetrieveRequest, pipeline: PipelineDep) -> RetrieveResponse:
    """Run the retrieval stages for one turn under ``message_id``.

    A cancelled request answers ``status="cancelled"`` without a retrieval.
    """
    try:
        outcome = await pipeline.retrieve(body.chat, body.messages, body.message_id)
    except CancelledError:
        return RetrieveResponse(message_id=body.message_id, status="cancelled")
    return RetrieveResponse(message_id=body.message_id, retrieval=outcome)


@router.post("/messages/{message_id}/cancel", response_model=CancelResponse)
async def cancel_message(message_id: str, pipeline: PipelineDep) -> CancelResponse:
    cancelled = pipeline.cancel(message_id)
    _logger.info("cancel_route_called", message_id=message_id, cancelled=cancelled)
    return CancelResponse(message_id=message_id, cancelled=cancelled)
