"""Abstract base class for text-embedding service providers.

Defines the contract for generating embedding vectors from text.
Implementations wrap OpenAI ``text-embedding-3-large``, an Azure OpenAI
embedding deployment, Cohere ``embed-multilingual-v3.0``, or a local
Ollama embedding model.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations:
#   OpenAIEmbeddingProvider       - OpenAI or OpenAI-compatible API
#   AzureOpenAIEmbeddingProvider  - Azure OpenAI deployment
#   CohereEmbeddingProvider       - Cohere embed v3 (separate document/query input types)
#   OllamaEmbeddingProvider       - local Ollama server
# Located in: src/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by the embedding store.

    Vectors are L2-normalized by the store before indexing, so the
    inner-product search behaves as cosine similarity whatever the
    provider returns.
    """

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of document texts.

        Parameters
        ----------
        texts:
            One or more text strings to embed.  Implementations handle
            batching internally if the underlying API has a per-call limit.

        Returns
        -------
        list[list[float]]
            Embedding vectors corresponding positionally to *texts*.

        Raises
        ------
        src.utils.errors.EmbeddingProviderError
            If the embedding API call fails.
        """

    @abstractmethod
    async def embed_query(self, text: str) -> list[float]:
        """Generate an embedding vector for a search query.

        Kept separate from :meth:`embed` because some vendors (Cohere)
        embed queries and documents with different input types.
        """

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"openai_embedding"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured, without a network call."""
