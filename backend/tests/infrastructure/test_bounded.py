"""Bounded Operations - tests for run_bounded's race-and-cancel behavior."""

import asyncio

import pytest

from plataforma.core.errors import AuthTimeoutError, OperationTimeoutError
from plataforma.infrastructure.bounded import run_bounded


async def test_returns_result_when_operation_wins():
    async def quick():
        return 42

    assert await run_bounded(quick, 1.0, label="quick") == 42


async def test_timeout_raises_and_cancels_operation():
    cancelled = asyncio.Event()

    async def hang():
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            cancelled.set()
            raise

    with pytest.raises(OperationTimeoutError) as exc_info:
        await run_bounded(hang, 0.05, label="hang")

    assert exc_info.value.operation == "hang"
    assert exc_info.value.http_status == 504
    await asyncio.wait_for(cancelled.wait(), 1.0)


async def test_timeout_uses_error_factory():
    async def hang():
        await asyncio.Event().wait()

    with pytest.raises(AuthTimeoutError) as exc_info:
        await run_bounded(
            hang, 0.05, label="auth", on_timeout=lambda: AuthTimeoutError(0.05),
        )
    assert exc_info.value.code == "AUTH_TIMEOUT"


async def test_operation_exception_propagates_unchanged():
    async def boom():
        raise ValueError("bad")

    with pytest.raises(ValueError, match="bad"):
        await run_bounded(boom, 1.0, label="boom")


async def test_timeout_does_not_wait_for_operation():
    loop = asyncio.get_running_loop()

    async def slow():
        await asyncio.sleep(10)

    started = loop.time()
    with pytest.raises(OperationTimeoutError):
        await run_bounded(slow, 0.05, label="slow")
    assert loop.time() - started < 1.0
