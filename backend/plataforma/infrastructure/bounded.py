"""Bounded Operations - race an awaitable against a timer and cancel the loser.

Invariants:
    - The operation runs as its own task; the caller waits at most timeout_seconds
    - On timeout the operation task is cancelled and never awaited past the deadline
    - On timeout the supplied error factory's exception is raised (default OperationTimeoutError)
    - Exceptions raised by the operation propagate unchanged
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from plataforma.core.errors import OperationTimeoutError, PlataformaError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_bounded(
    operation: Callable[[], Awaitable[T]],
    timeout_seconds: float,
    *,
    label: str,
    on_timeout: Callable[[], PlataformaError] | None = None,
) -> T:
    """Run operation() with a deadline. The first to finish wins."""
    task = asyncio.ensure_future(operation())
    done, _ = await asyncio.wait({task}, timeout=timeout_seconds)
    if task in done:
        return task.result()

    task.cancel()
    # Retrieve the eventual outcome so an ignored cancellation never warns
    task.add_done_callback(_consume_result)
    logger.warning(
        f"{label} exceeded {timeout_seconds}s, cancelled",
        extra={"step": label},
    )
    if on_timeout is not None:
        raise on_timeout()
    raise OperationTimeoutError(label, timeout_seconds)


def _consume_result(task: asyncio.Future) -> None:
    if not task.cancelled():
        task.exception()
