"""Streams the final answer of a chat turn from the configured provider.

Two views of the same stream:

* :meth:`AnswerStreamer.stream` -- an async iterator of
  :class:`~src.models.chat.StreamEvent`: zero or more ``token`` events,
  then exactly one terminal ``end`` or ``cancelled`` event.  The WebSocket
  route forwards these as they come.
* :meth:`AnswerStreamer.send` -- drives :meth:`stream` to completion,
  calling ``on_token`` for every fragment, and resolves with a
  :class:`~src.models.chat.StreamOutcome`.

Each fragment wait is raced against the request's cancellation token, so
a cancel takes effect even while the provider is silent.  On cancel the
provider generator is closed (releasing its HTTP stream) and no further
token is emitted.  Provider failures surface as
:class:`~src.utils.errors.LLMError` and are never reported as a cancel.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence

import structlog

from src.interfaces.llm_provider import IStreamingChatProvider
from src.models.chat import ChatMessage, StreamEvent, StreamOutcome
from src.pipeline.cancellation import CancellationToken

logger = structlog.get_logger(logger_name=__name__)

TokenCallback = Callable[[str], None] | Callable[[str], Awaitable[None]]


class _StreamCancelled(Exception):
    pass


async def _next_fragment(
    fragments: AsyncIterator[str],
    cancel_token: CancellationToken | None,
) -> str:
    """Return the next fragment, or raise ``_StreamCancelled`` if the token fires first."""
    if cancel_token is None:
        return await fragments.__anext__()
    if cancel_token.is_cancelled:
        raise _StreamCancelled

    next_task = asyncio.ensure_future(fragments.__anext__())
    cancel_task = asyncio.ensure_future(cancel_token.wait())
    try:
        done, _ = await asyncio.wait(
            {next_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
        )
    finally:
        cancel_task.cancel()

    if next_task in done:
        return next_task.result()

    next_task.cancel()
    # The generator must finish unwinding before it can be closed.
    with contextlib.suppress(asyncio.CancelledError, StopAsyncIteration):
        await next_task
    raise _StreamCancelled


class AnswerStreamer:
    """Streams answers from exactly one chat provider."""

    def __init__(self, provider: IStreamingChatProvider) -> None:
        self._provider = provider

    @property
    def provider_name(self) -> str:
        return self._provider.get_provider_name()

    async def stream(
        self,
        messages: Sequence[ChatMessage],
        temperature: float,
        max_tokens: int,
        cancel_token: CancellationToken | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Yield ``token`` events followed by ``end`` (full text) or ``cancelled``."""
        fragments = self._provider.stream_chat(list(messages), temperature, max_tokens)
        parts: list[str] = []
        try:
            while True:
                try:
                    fragment = await _next_fragment(fragments, cancel_token)
                except StopAsyncIteration:
                    break
                except _StreamCancelled:
                    logger.info("answer_stream_cancelled", fragments=len(parts))
                    yield StreamEvent(kind="cancelled", data="".join(parts))
                    return
                if cancel_token is not None and cancel_token.is_cancelled:
                    logger.info("answer_stream_cancelled", fragments=len(parts))
                    yield StreamEvent(kind="cancelled", data="".join(parts))
                    return
                parts.append(fragment)
                yield StreamEvent(kind="token", data=fragment)
        finally:
            aclose = getattr(fragments, "aclose", None)
            if aclose is not None:
                await aclose()

        logger.info(
            "answer_stream_complete",
            provider=self.provider_name,
            fragments=len(parts),
        )
        yield StreamEvent(kind="end", data="".join(parts))

    async def send(
        self,
        messages: Sequence[ChatMessage],
        temperature: float,
        max_tokens: int,
        on_token: TokenCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> StreamOutcome:
        """Stream the answer, reporting each fragment to *on_token*.

        *on_token* may be a plain function or a coroutine function.
        """
        events = self.stream(messages, temperature, max_tokens, cancel_token)
        async with contextlib.aclosing(events):
            async for event in events:
                if event.kind == "token":
                    if on_token is not None:
                        result = on_token(event.data)
                        if asyncio.iscoroutine(result):
                            await result
                elif event.kind == "cancelled":
                    return StreamOutcome(status="cancelled", content=event.data or "")
                elif event.kind == "end":
                    return StreamOutcome(status="completed", content=event.data or "")
        # stream() always ends with a terminal event.
        return StreamOutcome(status="completed")
