"""Vector index implementations."""

from src.providers.vector_store.faiss_index import FaissIndex

__all__ = ["FaissIndex"]
