"""Embedding provider implementations.

Embeddings convert text into numeric vectors that capture semantic meaning.
These vectors are stored in the per-database FAISS index and used for
similarity search.

Four implementations of IEmbeddingProvider:
    1. OpenAIEmbeddingProvider       — text-embedding-3-large (3072 dims), or
       any OpenAI-compatible endpoint via ``openai_base_url``.
    2. AzureOpenAIEmbeddingProvider  — an Azure OpenAI embedding deployment.
    3. CohereEmbeddingProvider       — embed-multilingual-v3.0 (1024 dims),
       with separate document and query input types.
    4. OllamaEmbeddingProvider       — nomic-embed-text via a local Ollama
       server (768 dims).  Free and local.
"""

from src.providers.embedding.cohere_embedding_provider import CohereEmbeddingProvider
from src.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider
from src.providers.embedding.openai_embedding_provider import (
    AzureOpenAIEmbeddingProvider,
    OpenAIEmbeddingProvider,
)

__all__ = [
    "AzureOpenAIEmbeddingProvider",
    "CohereEmbeddingProvider",
    "OllamaEmbeddingProvider",
    "OpenAIEmbeddingProvider",
]
