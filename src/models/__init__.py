"""ragdesk domain models — re-exports all public model classes.

The models are organized across two submodules by domain concern:
    - rag.py   — documents, chunks, search/fusion results, database bookkeeping
    - chat.py  — chat messages, per-chat settings, and turn/stream outcomes
"""

from __future__ import annotations

from src.models.chat import (
    DEFAULT_SYSTEM_MESSAGE,
    ChatMessage,
    ChatSettings,
    RetrievalOutcome,
    StreamEvent,
    StreamOutcome,
    SufficiencyResult,
    TransformedQuery,
    TurnResult,
)
from src.models.rag import (
    AddDocumentsResult,
    Chunk,
    DatabaseInfo,
    Document,
    DocumentInfo,
    FusedResult,
    SearchResult,
)

__all__ = [
    "DEFAULT_SYSTEM_MESSAGE",
    "AddDocumentsResult",
    "ChatMessage",
    "ChatSettings",
    "Chunk",
    "DatabaseInfo",
    "Document",
    "DocumentInfo",
    "FusedResult",
    "RetrievalOutcome",
    "SearchResult",
    "StreamEvent",
    "StreamOutcome",
    "SufficiencyResult",
    "TransformedQuery",
    "TurnResult",
]
