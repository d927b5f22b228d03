"""Cohere streaming chat provider adapter.

Uses the v2 ``cohere.AsyncClientV2`` chat API, which accepts an
OpenAI-style ``[{"role", "content"}]`` message list and streams typed
events.  Only ``content-delta`` events carry answer text.
"""

from __future__ import annotations

from typing import AsyncIterator

import cohere
import httpx
import structlog
from cohere.core.api_error import ApiError

from src.config.settings import Settings
from src.interfaces.llm_provider import IStreamingChatProvider
from src.models.chat import ChatMessage
from src.utils.errors import LLMError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_MODEL = "command-r-plus"


class CohereChatProvider(IStreamingChatProvider):
    """Chat provider backed by the Cohere chat API."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._api_key = settings.cohere_api_key
        self._client = cohere.AsyncClientV2(api_key=self._api_key or None)
        self._model = settings.cohere_chat_model or _DEFAULT_MODEL

    async def stream_chat(
        self,
        messages: list[ChatMessage],
        temperature: float = 0.5,
        max_tokens: int = 1024,
    ) -> AsyncIterator[str]:
        events = self._client.chat_stream(
            model=self._model,
            messages=[m.to_provider_dict() for m in messages],
            temperature=temperature,
            max_tokens=max_tokens,
        )
        try:
            async for event in events:
                if getattr(event, "type", None) != "content-delta":
                    continue
                text = event.delta.message.content.text
                if text:
                    yield text
        except (ApiError, httpx.HTTPError) as exc:
            raise LLMError(
                message=f"Cohere API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        finally:
            aclose = getattr(events, "aclose", None)
            if aclose is not None:
                await aclose()

        logger.info("cohere_stream_complete", model=self._model)

    def get_provider_name(self) -> str:
        return "cohere"

    def is_available(self) -> bool:
        return bool(self._api_key)
