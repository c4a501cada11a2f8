"""Async utilities for bridging blocking GitHub calls to async handlers."""

import asyncio
import logging
from typing import Any, Callable, Coroutine, Sequence, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Await blocking ``func(*args, **kwargs)`` on a worker thread.

    Tool handlers use it for every ``GitHubClient`` call, e.g.
    ``await run_sync(client.list_project_items, project_id)``.
    """
    return await asyncio.to_thread(func, *args, **kwargs)


async def gather_with_timeout(
    coros: Sequence[Coroutine[Any, Any, T]],
    timeout: float,
    continue_on_error: bool = False,
) -> list[T | BaseException]:
    """Run coroutines concurrently and join them under one overall timeout.

    Used for per-project fetches in batch operations.

    Args:
        coros: Coroutines to run concurrently.
        timeout: Overall deadline in seconds for the whole batch.
        continue_on_error: If ``True``, a failing coroutine yields its
            exception in the result list instead of aborting the batch.

    Returns:
        Results in input order (exceptions in place of failures when
        ``continue_on_error`` is set).

    Raises:
        TimeoutError: If the batch does not finish within *timeout*.
    """
    try:
        results = await asyncio.wait_for(
            asyncio.gather(*coros, return_exceptions=continue_on_error),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.error("Batch of %d operations timed out after %ss", len(coros), timeout)
        raise TimeoutError(
            f"{len(coros)} operations did not finish within {timeout}s"
        ) from None

    if continue_on_error:
        failed = sum(1 for r in results if isinstance(r, BaseException))
        if failed:
            logger.warning("%d of %d operations failed", failed, len(results))
    return list(results)
