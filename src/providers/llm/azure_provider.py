"""Azure OpenAI streaming chat provider adapter.

Azure serves the same chat-completions protocol as OpenAI, but addresses a
*deployment* rather than a model and authenticates against a per-resource
endpoint with an explicit API version.  ``openai.AsyncAzureOpenAI`` handles
both, so this adapter only swaps the client and the model name.
"""

from __future__ import annotations

import openai

from src.config.settings import Settings
from src.providers.llm.openai_provider import OpenAIChatProvider


class AzureOpenAIChatProvider(OpenAIChatProvider):
    """Chat provider backed by an Azure OpenAI deployment."""

    def __init__(self, settings: Settings) -> None:
        super().__init__(settings)
        self._api_key = settings.azure_openai_api_key
        self._model = settings.azure_chat_deployment
        self._provider_label = "azure-openai"

    def _build_client(self, settings: Settings, client_kwargs: dict) -> openai.AsyncAzureOpenAI:
        return openai.AsyncAzureOpenAI(
            api_key=settings.azure_openai_api_key,
            azure_endpoint=settings.azure_openai_endpoint,
            api_version=settings.azure_openai_api_version,
            timeout=client_kwargs["timeout"],
        )

    def is_available(self) -> bool:
        return bool(
            self._api_key
            and self._settings.azure_openai_endpoint
            and self._settings.azure_chat_deployment
        )
