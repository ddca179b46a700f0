"""Run blocking analyzer and reviewer code without tying the event loop to it."""

from __future__ import annotations

import asyncio
import functools
import logging
import threading
from collections.abc import Callable
from typing import Any, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


def _settle(future: asyncio.Future[Any], result: Any = None, error: Exception | None = None) -> None:
    # Timed-out callers cancel the future; the late result is dropped
    if future.done():
        return
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(result)


async def run_detached(func: Callable[..., T], *args: Any, name: str = "uxaudit-worker") -> T:
    """Run a blocking callable on a daemon thread and await its result.

    Unlike ``asyncio.to_thread`` the thread is not owned by the loop's default
    executor, so cancelling the await (a phase or cycle timeout) returns
    immediately and ``asyncio.run`` does not wait for the thread on shutdown.
    The abandoned thread finishes in the background and its result is
    discarded.

    Args:
        func: Blocking callable
        *args: Arguments for ``func``
        name: Thread name, shown in debug logs and tracebacks

    Returns:
        Whatever ``func`` returns; exceptions it raises are re-raised here
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future[T] = loop.create_future()

    def target() -> None:
        try:
            result = func(*args)
        except Exception as e:
            deliver = functools.partial(_settle, future, error=e)
        else:
            deliver = functools.partial(_settle, future, result)
        try:
            loop.call_soon_threadsafe(deliver)
        except RuntimeError:
            logger.debug(f"{name} finished after its event loop closed; result dropped")

    threading.Thread(target=target, name=name, daemon=True).start()
    return await future
