"""Shared concurrency helpers for discovery fan-out and batch upserts.

Two patterns are exposed:

1. **throttled_gather** -- a drop-in replacement for ``asyncio.gather`` that
   wraps each awaitable in a semaphore acquire/release.  The discovery
   pipeline uses it for per-source crawls (limit 1 crawls sources one after
   another) and the upsert step uses it to bound
   concurrent SQLite writers.

2. **chunked** -- splits a list into fixed-size batches for the weekly job.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Iterator, Sequence, TypeVar

_T = TypeVar("_T")


async def throttled_gather(
    coros: Sequence[Awaitable[_T]],
    limit: int = 1,
    return_exceptions: bool = True,
) -> list[_T | BaseException]:
    """Run awaitables concurrently with at most *limit* in flight.

    Parameters
    ----------
    coros:
        Awaitable objects to execute.
    limit:
        Maximum number of awaitables executing at the same time.  Values
        below 1 are treated as 1.
    return_exceptions:
        If ``True``, exceptions are returned in the result list rather than
        raised.  Mirrors ``asyncio.gather`` semantics.

    Returns
    -------
    list
        Results in the same order as the input awaitables.
    """
    semaphore = asyncio.Semaphore(max(1, limit))

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    tasks = [_wrapped(c) for c in coros]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)


def chunked(items: Sequence[_T], size: int) -> Iterator[list[_T]]:
    """Yield consecutive slices of *items* holding at most *size* elements."""
    if size < 1:
        raise ValueError(f"Batch size must be >= 1, got {size}")
    for start in range(0, len(items), size):
        yield list(items[start : start + size])
