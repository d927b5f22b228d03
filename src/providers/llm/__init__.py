"""Streaming chat-completion provider adapters."""

from src.providers.llm.anthropic_provider import AnthropicChatProvider
from src.providers.llm.azure_provider import AzureOpenAIChatProvider
from src.providers.llm.cohere_provider import CohereChatProvider
from src.providers.llm.ollama_provider import OllamaChatProvider
from src.providers.llm.openai_provider import OpenAIChatProvider

__all__ = [
    "AnthropicChatProvider",
    "AzureOpenAIChatProvider",
    "CohereChatProvider",
    "OllamaChatProvider",
    "OpenAIChatProvider",
]
