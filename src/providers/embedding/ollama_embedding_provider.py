"""Ollama embedding provider adapter.

Calls Ollama's native ``POST /api/embed`` endpoint over ``httpx``.  The
endpoint takes a list under ``input`` and returns ``{"embeddings": [...]}``
in the same order.  Requires a running Ollama server with an embedding
model pulled (``ollama pull nomic-embed-text``).
"""

from __future__ import annotations

import httpx
import structlog

from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.utils.errors import EmbeddingProviderError

logger = structlog.get_logger(logger_name=__name__)

_BATCH_SIZE = 512

_MODEL_DIMENSIONS: dict[str, int] = {
    "nomic-embed-text": 768,
    "mxbai-embed-large": 1024,
    "bge-m3": 1024,
    "all-minilm": 384,
    "snowflake-arctic-embed": 1024,
}


class OllamaEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by a local Ollama embedding model."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        self._base_url = settings.ollama_base_url.rstrip("/")
        self._model = settings.ollama_embedding_model
        # Strip a tag suffix such as ":latest" for the dimension lookup.
        self._dimension = _MODEL_DIMENSIONS.get(self._model.split(":")[0], 768)
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(120.0, connect=5.0))

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        all_embeddings: list[list[float]] = []
        try:
            for start in range(0, len(texts), _BATCH_SIZE):
                batch = texts[start : start + _BATCH_SIZE]
                response = await self._client.post(
                    f"{self._base_url}/api/embed",
                    json={"model": self._model, "input": batch},
                )
                response.raise_for_status()
                embeddings = response.json().get("embeddings") or []
                if len(embeddings) != len(batch):
                    raise EmbeddingProviderError(
                        message=(
                            f"Ollama returned {len(embeddings)} embeddings "
                            f"for {len(batch)} inputs"
                        ),
                        provider_name=self.get_provider_name(),
                    )
                all_embeddings.extend(embeddings)
                logger.info(
                    "ollama_embedding_batch",
                    model=self._model,
                    batch_size=len(batch),
                )
        except httpx.HTTPError as exc:
            raise EmbeddingProviderError(
                message=f"Ollama embedding request failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return all_embeddings

    async def embed_query(self, text: str) -> list[float]:
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "ollama_embedding"

    def is_available(self) -> bool:
        return bool(self._base_url)
