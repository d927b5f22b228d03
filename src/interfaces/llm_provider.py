"""Abstract base class for streaming chat-completion providers.

Defines the contract for any chat backend used for query analysis,
sufficiency classification, query transformation, title generation, JSON
repair, and streamed answers.  Implementations wrap OpenAI (or any
OpenAI-compatible server), Azure OpenAI, Cohere, Anthropic, or a local
Ollama server.  Vendor selection happens once in ``src/main.py``; every
call-site stays provider-agnostic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterator

from src.models.chat import ChatMessage


# Concrete implementations: OpenAIChatProvider, AzureOpenAIChatProvider,
# CohereChatProvider, AnthropicChatProvider, OllamaChatProvider
# Located in: src/providers/llm/
class IStreamingChatProvider(ABC):
    """Contract for chat-completion services used throughout the pipeline.

    The primitive is :meth:`stream_chat`; :meth:`complete` is derived from
    it so adapters only implement streaming once.
    """

    @abstractmethod
    def stream_chat(
        self,
        messages: list[ChatMessage],
        temperature: float = 0.5,
        max_tokens: int = 1024,
    ) -> AsyncIterator[str]:
        """Stream incremental text fragments for a chat completion.

        Parameters
        ----------
        messages:
            Ordered transcript.  ``system`` messages come first; ``doc``
            messages must already be filtered out by the caller.
        temperature:
            Sampling temperature.
        max_tokens:
            Upper bound on generated tokens.

        Returns
        -------
        AsyncIterator[str]
            An async generator yielding text fragments as they arrive.
            Closing the generator early (``aclose()``) must release the
            underlying HTTP stream.

        Raises
        ------
        src.utils.errors.LLMError
            If the API call fails before or during streaming.
        """

    async def complete(
        self,
        messages: list[ChatMessage],
        temperature: float = 0.3,
        max_tokens: int = 1024,
    ) -> str:
        """Run :meth:`stream_chat` to completion and return the full text."""
        parts: list[str] = []
        async for fragment in self.stream_chat(messages, temperature, max_tokens):
            parts.append(fragment)
        return "".join(parts)

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"openai"`` or ``"azure-openai"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if credentials/endpoints needed by the adapter are configured.

        Implementations must not make a network call here.
        """
