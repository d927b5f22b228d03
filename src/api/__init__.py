"""ragdesk API layer — routes, schemas, WebSocket, and middleware."""

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router
from src.api.schemas import (
    AnswerRequest,
    ErrorResponse,
    HealthResponse,
    RetrieveRequest,
    RetrieveResponse,
)
from src.api.websocket import websocket_chat

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
    "websocket_chat",
    "AnswerRequest",
    "ErrorResponse",
    "HealthResponse",
    "RetrieveRequest",
    "RetrieveResponse",
]
