"""WebSocket endpoint for streamed chat answers.

One connection carries one answer.  The client opens
``/ws/chat/{message_id}``, sends a single JSON frame matching
:class:`~src.api.schemas.AnswerRequest` and receives events until a
terminal one.

# ─── HOW ANSWER STREAMING WORKS (Junior Developer Guide) ──────────────
#
#   Client                                  Backend (this file)
#   ──────                                  ──────────────────
#   ws = new WebSocket(url)   ──────→       websocket.accept()
#   send {chat, messages, retrieval}  ──→   ChatPipeline.answer(...)
#                             ←──────       {"type": "token", "data": "Hel"}
#                             ←──────       {"type": "token", "data": "lo"}
#                             ←──────       {"type": "end"}
#                             ←──────       {"type": "citations", "data": [...]}
#                             ←──────       {"type": "messages", "data": [...]}
#                                           close()
#
# Terminal alternatives: {"type": "cancelled"} after a
# POST /api/v1/messages/{message_id}/cancel (or a client disconnect), and
# {"type": "error", "detail": "..."} when the provider fails.  In both
# cases no "messages" event is sent: the transcript is unchanged.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
import contextlib

import structlog
from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from src.api.schemas import AnswerRequest
from src.models.chat import RetrievalOutcome
from src.pipeline.orchestrator import ChatPipeline
from src.utils.errors import RagDeskError
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


async def _watch_disconnect(websocket: WebSocket, pipeline: ChatPipeline, message_id: str) -> None:
    """Cancel the answer if the client goes away mid-stream."""
    with contextlib.suppress(WebSocketDisconnect, RuntimeError):
        while True:
            await websocket.receive_text()
    pipeline.cancel(message_id)


async def websocket_chat(websocket: WebSocket, message_id: str) -> None:
    """Stream one chat answer to the client.

    Parameters
    ----------
    websocket:
        The WebSocket connection managed by FastAPI / Starlette.
    message_id:
        Id under which the request can be cancelled.
    """
    pipeline: ChatPipeline = websocket.app.state.pipeline

    await websocket.accept()
    _logger.info("websocket_connected", message_id=message_id)

    try:
        request = AnswerRequest.model_validate(await websocket.receive_json())
    except (ValidationError, ValueError) as exc:
        await websocket.send_json({"type": "error", "detail": f"Invalid request: {exc}"})
        await websocket.close()
        return
    except WebSocketDisconnect:
        _logger.info("websocket_disconnected", message_id=message_id)
        return

    retrieval = request.retrieval or RetrievalOutcome(document_search=False)

    async def _on_token(fragment: str) -> None:
        await websocket.send_json({"type": "token", "data": fragment})

    watcher = asyncio.create_task(_watch_disconnect(websocket, pipeline, message_id))
    try:
        result = await pipeline.answer(
            request.chat, request.messages, retrieval, message_id, on_token=_on_token
        )
        if result.status == "cancelled":
            await websocket.send_json({"type": "cancelled"})
        else:
            await websocket.send_json({"type": "end"})
            await websocket.send_json(
                {
                    "type": "citations",
                    "data": [c.model_dump(mode="json") for c in result.citations],
                }
            )
            await websocket.send_json(
                {
                    "type": "messages",
                    "data": [m.model_dump(mode="json") for m in result.messages],
                }
            )
    except RagDeskError as exc:
        _logger.error("websocket_answer_failed", message_id=message_id, error=str(exc))
        with contextlib.suppress(WebSocketDisconnect, RuntimeError):
            await websocket.send_json({"type": "error", "detail": exc.message})
    except WebSocketDisconnect:
        _logger.info("websocket_disconnected", message_id=message_id)
    finally:
        watcher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await watcher
        with contextlib.suppress(RuntimeError):
            await websocket.close()
