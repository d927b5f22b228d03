"""Ollama local-model streaming chat provider adapter.

Talks to Ollama's native ``POST /api/chat`` endpoint over ``httpx``.  With
``"stream": true`` the server answers with newline-delimited JSON objects,
each carrying ``message.content``; the final object has ``"done": true``.

No API key is needed; the server is assumed to run at ``ollama_base_url``
(default ``http://localhost:11434``).
"""

from __future__ import annotations

import json
from typing import AsyncIterator

import httpx
import structlog

from src.config.settings import Settings
from src.interfaces.llm_provider import IStreamingChatProvider
from src.models.chat import ChatMessage
from src.utils.errors import LLMError

logger = structlog.get_logger(logger_name=__name__)


class OllamaChatProvider(IStreamingChatProvider):
    """Chat provider backed by a local Ollama instance."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        self._base_url = settings.ollama_base_url.rstrip("/")
        self._model = settings.ollama_model
        # Local models can take a while to load on the first request.
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(120.0, connect=5.0))

    async def stream_chat(
        self,
        messages: list[ChatMessage],
        temperature: float = 0.5,
        max_tokens: int = 1024,
    ) -> AsyncIterator[str]:
        payload = {
            "model": self._model,
            "messages": [m.to_provider_dict() for m in messages],
            "stream": True,
            "options": {"temperature": temperature, "num_predict": max_tokens},
        }
        try:
            async with self._client.stream(
                "POST", f"{self._base_url}/api/chat", json=payload
            ) as response:
                response.raise_for_status()
                async for line in response.aiter_lines():
                    if not line.strip():
                        continue
                    data = json.loads(line)
                    if data.get("error"):
                        raise LLMError(
                            message=f"Ollama error: {data['error']}",
                            provider_name=self.get_provider_name(),
                        )
                    content = (data.get("message") or {}).get("content")
                    if content:
                        yield content
                    if data.get("done"):
                        break
        except httpx.HTTPError as exc:
            raise LLMError(
                message=f"Ollama request failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except json.JSONDecodeError as exc:
            raise LLMError(
                message=f"Ollama sent a malformed stream line: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("ollama_stream_complete", model=self._model)

    def get_provider_name(self) -> str:
        return "ollama"

    def is_available(self) -> bool:
        """Ollama is always considered available when a base URL is configured."""
        return bool(self._base_url)
