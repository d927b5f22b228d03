"""Per-request cancellation tokens.

Every chat request carries a client-chosen ``message_id``.  The
:class:`StreamRegistry` maps that id to a :class:`CancellationToken` for
as long as the request runs, so a separate "stop" request (HTTP route,
WebSocket message, Ctrl-C in the CLI) can reach the running stages.

# ─── HOW CANCELLATION FLOWS ───────────────────────────────────────────
#
#   cancel route ──cancel(message_id)──→ StreamRegistry ──→ token.cancel()
#                                                              │
#   ChatPipeline.retrieve ←── races every stage against token.wait()
#   AnswerStreamer        ←── races every fragment against token.wait()
#
# Tokens are single-use: once cancelled they stay cancelled, and the
# registry drops them when the request finishes.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Iterator

import structlog

from src.utils.errors import CancelledError

logger = structlog.get_logger(logger_name=__name__)


class CancellationToken:
    """A one-way cancelled flag that coroutines can also wait on."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancelledError(message="Request cancelled by user", provider_name="pipeline")


class StreamRegistry:
    """Tracks the cancellation token of every running request by message id."""

    def __init__(self) -> None:
        self._tokens: dict[str, CancellationToken] = {}

    def register(self, message_id: str) -> CancellationToken:
        """Create and return a fresh token for *message_id*.

        A token still registered under the same id (an abandoned request)
        is cancelled and replaced.
        """
        previous = self._tokens.get(message_id)
        if previous is not None:
            previous.cancel()
            logger.warning("cancellation_token_replaced", message_id=message_id)
        token = CancellationToken()
        self._tokens[message_id] = token
        return token

    def get(self, message_id: str) -> CancellationToken | None:
        return self._tokens.get(message_id)

    def cancel(self, message_id: str) -> bool:
        """Cancel the request running under *message_id*.

        Returns ``False`` when nothing is registered under that id.
        """
        token = self._tokens.get(message_id)
        if token is None:
            return False
        token.cancel()
        logger.info("request_cancel_requested", message_id=message_id)
        return True

    def remove(self, message_id: str, token: CancellationToken | None = None) -> None:
        """Forget *message_id*; with *token*, only if it is still the registered one."""
        if token is None or self._tokens.get(message_id) is token:
            self._tokens.pop(message_id, None)

    @contextlib.contextmanager
    def track(self, message_id: str) -> Iterator[CancellationToken]:
        """Register a token for the duration of a ``with`` block."""
        token = self.register(message_id)
        try:
            yield token
        finally:
            self.remove(message_id, token)

    def __len__(self) -> int:
        return len(self._tokens)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._tokens
