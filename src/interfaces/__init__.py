"""Public interface definitions for all external service providers.

Every external API or library dependency with interchangeable backends is
accessed through the abstract base classes defined in this package.
Concrete adapters implement these interfaces and are selected once at
startup in ``src/main.py``.

CONCRETE PROVIDER MAP:
    Interface                  →  Concrete implementations (in src/providers/)
    ─────────────────────────────────────────────────────────────────────
    IStreamingChatProvider     →  OpenAIChatProvider, AzureOpenAIChatProvider,
                                  CohereChatProvider, AnthropicChatProvider,
                                  OllamaChatProvider
    IEmbeddingProvider         →  OpenAIEmbeddingProvider,
                                  AzureOpenAIEmbeddingProvider,
                                  CohereEmbeddingProvider,
                                  OllamaEmbeddingProvider
    IKeywordExtractor          →  NltkKeywordExtractor
    IVectorIndex               →  FaissIndex
"""

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.keyword_extractor import IKeywordExtractor
from src.interfaces.llm_provider import IStreamingChatProvider
from src.interfaces.vector_store_provider import IVectorIndex

__all__ = [
    "IEmbeddingProvider",
    "IKeywordExtractor",
    "IStreamingChatProvider",
    "IVectorIndex",
]
