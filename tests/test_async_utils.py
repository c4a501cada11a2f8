"""
Tests for async_utils module.

Covers run_sync and gather_with_timeout.
"""

import asyncio
import threading

import pytest

from taskmaster_sync.core.async_utils import gather_with_timeout, run_sync


def _sync_add(a: int, b: int) -> int:
    return a + b


async def test_run_sync_calls_function():
    assert await run_sync(_sync_add, 3, 4) == 7


async def test_run_sync_passes_kwargs():
    def _kw_func(*, name: str) -> str:
        return f"hello {name}"

    assert await run_sync(_kw_func, name="world") == "hello world"


async def test_run_sync_runs_off_the_event_loop_thread():
    loop_thread = threading.get_ident()
    worker_thread = await run_sync(threading.get_ident)
    assert worker_thread != loop_thread


async def test_run_sync_propagates_exceptions():
    def _boom():
        raise KeyError("missing")

    with pytest.raises(KeyError):
        await run_sync(_boom)


async def _value(v, delay=0.0):
    await asyncio.sleep(delay)
    return v


async def _fail(message):
    raise RuntimeError(message)


async def test_gather_preserves_order():
    results = await gather_with_timeout(
        [_value("slow", 0.05), _value("fast")], timeout=5
    )
    assert results == ["slow", "fast"]


async def test_gather_raises_first_error_by_default():
    with pytest.raises(RuntimeError, match="bad"):
        await gather_with_timeout([_value(1), _fail("bad")], timeout=5)


async def test_gather_continue_on_error_returns_exceptions():
    results = await gather_with_timeout(
        [_value(1), _fail("bad")], timeout=5, continue_on_error=True
    )
    assert results[0] == 1
    assert isinstance(results[1], RuntimeError)


async def test_gather_timeout():
    with pytest.raises(TimeoutError, match="did not finish within"):
        await gather_with_timeout([_value(1, delay=5)], timeout=0.05)


async def test_gather_empty():
    assert await gather_with_timeout([], timeout=1) == []
