"""Async utilities for bridging blocking HTTP calls to the asyncio publish loop."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Callable, Coroutine, Sequence, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)

DEFAULT_MAX_PARALLEL = 5

# Module-level semaphore, initialized at startup (or lazily on first request)
_semaphore: asyncio.Semaphore | None = None


def init_semaphore(max_parallel: int = DEFAULT_MAX_PARALLEL) -> asyncio.Semaphore:
    """Initialize the request concurrency gate. Call once at startup."""
    global _semaphore
    semaphore = asyncio.Semaphore(max_parallel)
    _semaphore = semaphore
    logger.info(
        "Remote request semaphore initialized: max_parallel=%d",
        max_parallel,
    )
    return semaphore


def get_semaphore() -> asyncio.Semaphore:
    """Return the process-wide gate, creating it with the default size if needed."""
    if _semaphore is None:
        return init_semaphore(DEFAULT_MAX_PARALLEL)
    return _semaphore


@asynccontextmanager
async def request_slot() -> AsyncIterator[None]:
    """Hold one slot of the concurrency gate for the duration of the block.

    Waiters are admitted in arrival order. The slot is released on every
    exit path, including exceptions and early returns.
    """
    async with get_semaphore():
        yield


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    Does NOT acquire the semaphore; callers that talk to the remote store
    wrap their whole retry loop in ``request_slot()`` instead.

    Example:
        response = await run_sync(session.request, "GET", url)
    """
    return await asyncio.to_thread(func, *args, **kwargs)


async def gather_limited(
    coros: Sequence[Coroutine[Any, Any, T]],
    return_exceptions: bool = False,
) -> list[Any]:
    """Run coroutines concurrently and return results in input order.

    Each coroutine is expected to acquire the gate itself (every client
    request does), so at most the gate size is ever in flight.

    Args:
        coros: Sequence of coroutines to run concurrently.
        return_exceptions: If True, exceptions are returned in place of
            results instead of propagating the first failure.
    """
    return list(
        await asyncio.gather(*coros, return_exceptions=return_exceptions)
    )
