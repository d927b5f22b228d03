"""OpenAI-compatible and Azure OpenAI embedding provider adapters.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
Supports real OpenAI and OpenAI-compatible providers (TogetherAI,
Fireworks, vLLM) via custom ``base_url`` and model name settings.  The
Azure adapter reuses the batching logic and only changes the client and
the deployment name.
"""

from __future__ import annotations

import openai
import structlog

from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.utils.errors import EmbeddingProviderError

logger = structlog.get_logger(logger_name=__name__)

_OPENAI_BATCH_LIMIT = 2048

_DEFAULT_MODEL = "text-embedding-3-large"

# Known embedding model dimensions.
_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "BAAI/bge-base-en-v1.5": 768,
    "BAAI/bge-large-en-v1.5": 1024,
    "intfloat/multilingual-e5-large-instruct": 1024,
}


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API.

    Uses ``text-embedding-3-large`` (3072 dims) by default.  When
    ``openai_base_url`` is configured the client points at that URL and
    uses ``openai_embedding_model`` if set.  Handles automatic batching for
    inputs exceeding the per-call limit.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._api_key = settings.openai_api_key

        # base_url only when configured.
        client_kwargs: dict = {"api_key": self._api_key or "not-needed"}
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url

        self._client = self._build_client(settings, client_kwargs)
        self._model = settings.openai_embedding_model or _DEFAULT_MODEL
        self._dimension = _MODEL_DIMENSIONS.get(self._model, 1536)
        self._provider_label = (
            "openai-compatible_embedding" if settings.openai_base_url else "openai_embedding"
        )

    def _build_client(self, settings: Settings, client_kwargs: dict) -> openai.AsyncOpenAI:
        return openai.AsyncOpenAI(**client_kwargs)

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Automatically splits into batches of 2048 if the input exceeds the
        per-call limit.
        """
        if not texts:
            return []

        try:
            all_embeddings: list[list[float]] = []
            for start in range(0, len(texts), _OPENAI_BATCH_LIMIT):
                batch = texts[start : start + _OPENAI_BATCH_LIMIT]
                response = await self._client.embeddings.create(
                    input=batch,
                    model=self._model,
                )
                # The API may reorder items; ``index`` is authoritative.
                ordered = sorted(response.data, key=lambda item: item.index)
                all_embeddings.extend(item.embedding for item in ordered)
                logger.info(
                    "openai_embedding_batch",
                    model=self._model,
                    provider=self._provider_label,
                    batch_size=len(batch),
                    tokens=response.usage.total_tokens if response.usage else None,
                )
            return all_embeddings
        except openai.APIError as exc:
            raise EmbeddingProviderError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def embed_query(self, text: str) -> list[float]:
        """Generate an embedding vector for a single query string."""
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        """Return ``True`` if an API key or a custom endpoint is configured."""
        return bool(self._api_key) or bool(self._settings.openai_base_url)


class AzureOpenAIEmbeddingProvider(OpenAIEmbeddingProvider):
    """Embedding provider backed by an Azure OpenAI embedding deployment.

    The dimension follows the deployment name: ``ada`` deployments return
    1536-dimensional vectors, everything else is assumed to be
    ``text-embedding-3-large`` (3072).
    """

    def __init__(self, settings: Settings) -> None:
        super().__init__(settings)
        self._api_key = settings.azure_openai_api_key
        self._model = settings.azure_embedding_deployment
        self._dimension = 1536 if "ada" in self._model.lower() else 3072
        self._provider_label = "azure-openai_embedding"

    def _build_client(self, settings: Settings, client_kwargs: dict) -> openai.AsyncAzureOpenAI:
        return openai.AsyncAzureOpenAI(
            api_key=settings.azure_openai_api_key,
            azure_endpoint=settings.azure_openai_endpoint,
            api_version=settings.azure_openai_api_version,
        )

    def is_available(self) -> bool:
        return bool(
            self._api_key
            and self._settings.azure_openai_endpoint
            and self._settings.azure_embedding_deployment
        )
