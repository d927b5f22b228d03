"""OpenAI-compatible streaming chat provider adapter.

Wraps the ``openai`` async client to implement
:class:`IStreamingChatProvider`.  When a custom ``openai_base_url`` is
configured (TogetherAI, vLLM, LM Studio, Fireworks, ...), the client points
at that URL instead of the default OpenAI endpoint, so one adapter covers
every server that speaks the chat-completions protocol.

The Azure adapter subclasses this one: only client construction and the
model/deployment name differ.
"""

from __future__ import annotations

from typing import AsyncIterator

import openai
import structlog

from src.config.settings import Settings
from src.interfaces.llm_provider import IStreamingChatProvider
from src.models.chat import ChatMessage
from src.utils.errors import LLMError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_MODEL = "gpt-4o"


class OpenAIChatProvider(IStreamingChatProvider):
    """Chat provider backed by an OpenAI-compatible API.

    Uses ``gpt-4o`` by default; override with ``OPENAI_CHAT_MODEL``.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._api_key = settings.openai_api_key

        client_kwargs: dict = {
            # Local OpenAI-compatible servers accept any key but the SDK
            # refuses an empty one.
            "api_key": self._api_key or "not-needed",
            "timeout": openai.Timeout(60.0, connect=5.0),
        }
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url

        self._client = self._build_client(settings, client_kwargs)
        self._model = settings.openai_chat_model or _DEFAULT_MODEL
        self._provider_label = "openai-compatible" if settings.openai_base_url else "openai"

    def _build_client(self, settings: Settings, client_kwargs: dict) -> openai.AsyncOpenAI:
        return openai.AsyncOpenAI(**client_kwargs)

    # ------------------------------------------------------------------
    # IStreamingChatProvider implementation
    # ------------------------------------------------------------------

    async def stream_chat(
        self,
        messages: list[ChatMessage],
        temperature: float = 0.5,
        max_tokens: int = 1024,
    ) -> AsyncIterator[str]:
        """Stream a chat completion, yielding each delta's text."""
        try:
            stream = await self._client.chat.completions.create(
                model=self._model,
                messages=[m.to_provider_dict() for m in messages],
                temperature=temperature,
                max_tokens=max_tokens,
                stream=True,
            )
        except openai.APIError as exc:
            raise LLMError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        fragments = 0
        try:
            async for chunk in stream:
                # Azure sends a leading chunk with no choices (content-filter
                # results), so every choice is inspected rather than [0].
                for choice in chunk.choices:
                    content = choice.delta.content if choice.delta else None
                    if content:
                        fragments += 1
                        yield content
        except openai.APIError as exc:
            raise LLMError(
                message=f"{self._provider_label} stream error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        finally:
            # Releases the HTTP connection when the consumer stops early.
            await stream.close()

        logger.info(
            "openai_stream_complete",
            model=self._model,
            provider=self._provider_label,
            fragments=fragments,
        )

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        """A key is required for api.openai.com; custom endpoints may not need one."""
        return bool(self._api_key) or bool(self._settings.openai_base_url)
