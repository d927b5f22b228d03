"""Concurrent vector search for every transformed query of a turn."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

import structlog

from src.models.rag import SearchResult
from src.services.embedding_store import EmbeddingStore
from src.utils.concurrency import throttled_gather

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_SEARCH_MARGIN = 5


class MultiQuerySearcher:
    """Searches one database with several queries at once.

    Each query asks for ``k + margin`` neighbours so that fusion still has
    ``k`` distinct results after cross-query duplicates are merged.  The
    shared semaphore caps embedding calls in flight across all turns.
    """

    def __init__(
        self,
        store: EmbeddingStore,
        margin: int = DEFAULT_SEARCH_MARGIN,
        concurrency: int = 4,
    ) -> None:
        self._store = store
        self._margin = margin
        self._semaphore = asyncio.Semaphore(concurrency)

    async def search(
        self,
        db_name: str,
        queries: Sequence[str],
        k: int,
    ) -> list[list[SearchResult]]:
        """Return one result list per query, in query order.

        The first failing search propagates; no partial result is returned.
        """
        result_sets = await throttled_gather(
            [self._store.search(db_name, query, k + self._margin) for query in queries],
            semaphore=self._semaphore,
        )
        logger.info(
            "multi_query_search_complete",
            db_name=db_name,
            queries=len(queries),
            hits=sum(len(results) for results in result_sets),
        )
        return list(result_sets)
