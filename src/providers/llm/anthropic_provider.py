"""Anthropic streaming chat provider adapter.

Wraps the ``anthropic`` async client to implement
:class:`IStreamingChatProvider` via the Messages streaming API.

Key differences from the OpenAI adapter:
    - The system prompt is a separate parameter, not a message in the list
    - Messages must alternate user/assistant and start with a user turn,
      so consecutive same-role messages are merged
    - Text arrives through ``stream.text_stream`` instead of choice deltas
"""

from __future__ import annotations

from typing import AsyncIterator

import anthropic
import structlog

from src.config.settings import Settings
from src.interfaces.llm_provider import IStreamingChatProvider
from src.models.chat import ChatMessage
from src.utils.errors import LLMError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_MODEL = "claude-sonnet-4-20250514"


def to_anthropic_messages(messages: list[ChatMessage]) -> tuple[str, list[dict]]:
    """Split *messages* into Anthropic's ``(system, messages)`` pair."""
    system_parts = [m.content for m in messages if m.role == "system"]
    converted: list[dict] = []
    for message in messages:
        if message.role not in ("user", "assistant"):
            continue
        if converted and converted[-1]["role"] == message.role:
            converted[-1]["content"] += "\n\n" + message.content
        else:
            converted.append({"role": message.role, "content": message.content})
    if converted and converted[0]["role"] == "assistant":
        converted.insert(0, {"role": "user", "content": "(continued conversation)"})
    return "\n\n".join(system_parts), converted


class AnthropicChatProvider(IStreamingChatProvider):
    """Chat provider backed by the Anthropic Claude API."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._api_key = settings.anthropic_api_key
        self._client = anthropic.AsyncAnthropic(api_key=self._api_key)
        self._model = settings.anthropic_model or _DEFAULT_MODEL

    async def stream_chat(
        self,
        messages: list[ChatMessage],
        temperature: float = 0.5,
        max_tokens: int = 1024,
    ) -> AsyncIterator[str]:
        """Stream a Claude response, yielding text deltas."""
        system, converted = to_anthropic_messages(messages)
        kwargs: dict = {
            "model": self._model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": converted,
        }
        if system:
            kwargs["system"] = system

        try:
            # Leaving the context manager closes the HTTP stream, including
            # when the consumer stops iterating early.
            async with self._client.messages.stream(**kwargs) as stream:
                async for text in stream.text_stream:
                    if text:
                        yield text
        except anthropic.APIError as exc:
            raise LLMError(
                message=f"Anthropic API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("anthropic_stream_complete", model=self._model)

    def get_provider_name(self) -> str:
        return "anthropic"

    def is_available(self) -> bool:
        return bool(self._api_key)
