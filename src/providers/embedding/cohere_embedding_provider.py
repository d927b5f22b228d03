"""Cohere embedding provider adapter.

Cohere's v3 embedding models embed documents and queries differently: the
``input_type`` must be ``search_document`` at ingestion time and
``search_query`` at retrieval time, which is why the interface keeps
:meth:`embed_query` separate from :meth:`embed`.
"""

from __future__ import annotations

import cohere
import httpx
import structlog
from cohere.core.api_error import ApiError

from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.utils.errors import EmbeddingProviderError

logger = structlog.get_logger(logger_name=__name__)

# Per-call input limit of the embed endpoint.
_COHERE_BATCH_LIMIT = 96

_DEFAULT_MODEL = "embed-multilingual-v3.0"

_MODEL_DIMENSIONS: dict[str, int] = {
    "embed-multilingual-v3.0": 1024,
    "embed-english-v3.0": 1024,
    "embed-multilingual-light-v3.0": 384,
    "embed-english-light-v3.0": 384,
}


class CohereEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by the Cohere embed API."""

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.cohere_api_key
        self._client = cohere.AsyncClientV2(api_key=self._api_key or None)
        self._model = settings.cohere_embedding_model or _DEFAULT_MODEL
        self._dimension = _MODEL_DIMENSIONS.get(self._model, 1024)

    async def _embed(self, texts: list[str], input_type: str) -> list[list[float]]:
        all_embeddings: list[list[float]] = []
        try:
            for start in range(0, len(texts), _COHERE_BATCH_LIMIT):
                batch = texts[start : start + _COHERE_BATCH_LIMIT]
                response = await self._client.embed(
                    texts=batch,
                    model=self._model,
                    input_type=input_type,
                    embedding_types=["float"],
                )
                all_embeddings.extend(list(v) for v in response.embeddings.float_)
                logger.info(
                    "cohere_embedding_batch",
                    model=self._model,
                    input_type=input_type,
                    batch_size=len(batch),
                )
        except (ApiError, httpx.HTTPError) as exc:
            raise EmbeddingProviderError(
                message=f"Cohere embedding error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return all_embeddings

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        return await self._embed(texts, "search_document")

    async def embed_query(self, text: str) -> list[float]:
        result = await self._embed([text], "search_query")
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "cohere_embedding"

    def is_available(self) -> bool:
        return bool(self._api_key)
