"""Unit tests for AnswerStreamer — token events, callbacks and mid-stream cancel."""

from __future__ import annotations

import asyncio

import pytest

from src.models.chat import ChatMessage
from src.pipeline.cancellation import CancellationToken
from src.services.rag.answer_streamer import AnswerStreamer
from src.utils.errors import LLMError
from tests.fakes import ScriptedChatProvider, StallingChatProvider

MESSAGES = [
    ChatMessage(role="system", content="You are a helpful assistant."),
    ChatMessage(role="user", content="Hello?"),
]


class TestStream:
    async def test_tokens_then_end(self) -> None:
        streamer = AnswerStreamer(ScriptedChatProvider([["Hel", "lo", "!"]]))

        events = [e async for e in streamer.stream(MESSAGES, 0.5, 100)]

        assert [(e.kind, e.data) for e in events] == [
            ("token", "Hel"),
            ("token", "lo"),
            ("token", "!"),
            ("end", "Hello!"),
        ]

    async def test_passes_sampling_parameters(self) -> None:
        provider = ScriptedChatProvider(["ok"])
        await AnswerStreamer(provider).send(MESSAGES, temperature=0.2, max_tokens=64)
        assert provider.call_kwargs == [{"temperature": 0.2, "max_tokens": 64}]
        assert provider.calls[0] == MESSAGES


class TestSend:
    async def test_sync_callback(self) -> None:
        received: list[str] = []
        streamer = AnswerStreamer(ScriptedChatProvider([["a", "b"]]))

        outcome = await streamer.send(MESSAGES, 0.5, 100, on_token=received.append)

        assert received == ["a", "b"]
        assert outcome.status == "completed"
        assert outcome.content == "ab"

    async def test_async_callback(self) -> None:
        received: list[str] = []

        async def on_token(fragment: str) -> None:
            await asyncio.sleep(0)
            received.append(fragment)

        streamer = AnswerStreamer(ScriptedChatProvider([["x", "y", "z"]]))
        outcome = await streamer.send(MESSAGES, 0.5, 100, on_token=on_token)

        assert received == ["x", "y", "z"]
        assert outcome.content == "xyz"

    async def test_provider_error_propagates(self) -> None:
        streamer = AnswerStreamer(ScriptedChatProvider([LLMError(message="rate limited", provider_name="openai")]))
        with pytest.raises(LLMError):
            await streamer.send(MESSAGES, 0.5, 100, cancel_token=CancellationToken())


class TestCancellation:
    async def test_cancel_while_provider_is_silent(self) -> None:
        provider = StallingChatProvider(["Partial ", "answer"])
        token = CancellationToken()
        received: list[str] = []
        streamer = AnswerStreamer(provider)

        task = asyncio.create_task(
            streamer.send(MESSAGES, 0.5, 100, on_token=received.append, cancel_token=token)
        )
        await asyncio.wait_for(provider.stalled.wait(), timeout=5)
        token.cancel()
        outcome = await asyncio.wait_for(task, timeout=5)

        assert outcome.status == "cancelled"
        assert outcome.content == "Partial answer"
        assert received == ["Partial ", "answer"]
        assert provider.closed

    async def test_cancelled_before_start(self) -> None:
        provider = ScriptedChatProvider([["never"]])
        token = CancellationToken()
        token.cancel()
        received: list[str] = []

        outcome = await AnswerStreamer(provider).send(
            MESSAGES, 0.5, 100, on_token=received.append, cancel_token=token
        )

        assert outcome.status == "cancelled"
        assert outcome.content == ""
        assert received == []

    async def test_stream_ends_with_cancelled_event(self) -> None:
        provider = StallingChatProvider(["one"])
        token = CancellationToken()
        events = []

        async def consume() -> None:
            async for event in AnswerStreamer(provider).stream(MESSAGES, 0.5, 100, token):
                events.append(event)

        task = asyncio.create_task(consume())
        await asyncio.wait_for(provider.stalled.wait(), timeout=5)
        token.cancel()
        await asyncio.wait_for(task, timeout=5)

        assert [e.kind for e in events] == ["token", "cancelled"]
        assert events[-1].data == "one"
