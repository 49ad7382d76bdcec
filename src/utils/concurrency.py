"""Shared asyncio fan-out helpers for backend calls.

Two patterns are exposed:

1. **throttled_gather** -- ``asyncio.gather`` with each awaitable wrapped in
   a semaphore acquire/release.  The metadata extractor uses it to cap how
   many LLM requests a single enrichment can have in flight.

2. **gather_in_batches** -- fixed-size batches, each batch joined with
   ``asyncio.gather`` before the next starts.  Bounds the number of
   outstanding requests while keeping input order in the output.  A failure
   inside a batch propagates and aborts the remaining batches.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Sequence, TypeVar

import structlog

from src.utils.logging import get_logger

_T = TypeVar("_T")
_R = TypeVar("_R")

_logger: structlog.BoundLogger = get_logger(__name__)


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore,
    return_exceptions: bool = True,
) -> list[_T | BaseException]:
    """Run awaitables concurrently, at most ``semaphore`` slots at a time.

    Parameters
    ----------
    coros:
        Awaitable objects to execute concurrently.
    semaphore:
        Semaphore bounding simultaneous execution.
    return_exceptions:
        If ``True``, exceptions are returned in the results list rather
        than being raised.  Mirrors ``asyncio.gather`` semantics.

    Returns
    -------
    list
        Results in the same order as the input coroutines.
    """

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    return await asyncio.gather(
        *(_wrapped(c) for c in coros), return_exceptions=return_exceptions
    )


async def gather_in_batches(
    items: Sequence[_T],
    worker: Callable[[_T], Awaitable[_R]],
    batch_size: int,
) -> list[_R]:
    """Apply *worker* to every item, *batch_size* concurrent calls at a time.

    Parameters
    ----------
    items:
        Inputs, processed in order.
    worker:
        Coroutine function called once per item.
    batch_size:
        Maximum number of concurrent worker calls; values below 1 are
        treated as 1.

    Returns
    -------
    list
        One result per item, in input order.

    Raises
    ------
    Exception
        The first exception raised inside a batch; later batches are not
        started.
    """
    size = max(1, batch_size)
    results: list[_R] = []
    for start in range(0, len(items), size):
        batch = items[start : start + size]
        batch_results = await asyncio.gather(*(worker(item) for item in batch))
        results.extend(batch_results)
        _logger.debug(
            "batch_complete",
            batch_start=start,
            batch_size=len(batch),
            total=len(items),
        )
    return results
