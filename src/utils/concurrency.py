"""Shared concurrency primitives for the query pipeline.

Provides a bounded fan-out helper used by the multi-query searcher: each
transformed query issues one embedding call plus one index search, and a
burst of four queries per turn from several open chats can trip embedding
rate limits without a cap.

**throttled_gather** wraps each awaitable in a semaphore acquire/release
and gathers them.  Results keep the input order, which the fusion step
relies on (result set ``i`` belongs to query ``i``).  The first failure
cancels the remaining searches instead of leaving them to run unobserved.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

import structlog

from src.utils.logging import get_logger

_T = TypeVar("_T")

# Default cap on concurrent embedding+search calls across all chats.
_DEFAULT_CONCURRENCY = 4

_logger: structlog.BoundLogger = get_logger(__name__)


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore | None = None,
) -> list[_T]:
    """Run awaitables concurrently with semaphore throttling.

    Parameters
    ----------
    coros:
        Awaitable objects to execute concurrently.
    semaphore:
        Semaphore for concurrency control.  A fresh one with
        ``_DEFAULT_CONCURRENCY`` slots is created when omitted.

    Returns
    -------
    list
        Results in the same order as the input coroutines.

    Raises
    ------
    Exception
        The first failure.  Every sibling still running is cancelled and
        awaited before it propagates.
    """
    if semaphore is None:
        semaphore = asyncio.Semaphore(_DEFAULT_CONCURRENCY)

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    tasks = [asyncio.ensure_future(_wrapped(c)) for c in coros]
    _logger.debug("throttled_gather_start", tasks=len(tasks))
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        pending = [task for task in tasks if not task.done()]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        if pending:
            _logger.debug("throttled_gather_cancelled", cancelled=len(pending))
        raise
