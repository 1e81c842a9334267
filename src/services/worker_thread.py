# src/services/worker_thread.py

"""Run blocking calls on daemon threads the event loop can walk away from.

``asyncio.to_thread`` uses the loop's default executor, which
``asyncio.run`` joins on shutdown and the interpreter joins at exit. A
scraper or model call abandoned by ``asyncio.wait_for`` would then keep
the CLI alive after the results are printed. Calls started here run on
daemon threads instead, so an abandoned call never delays exit.
"""

import asyncio
import functools
import logging
import threading
from collections.abc import Callable
from typing import Any, TypeVar

logger = logging.getLogger("shopmate.worker")

T = TypeVar("T")


def run_detached(
    func: Callable[..., T],
    *args: Any,
) -> "asyncio.Future[T]":
    """Start ``func(*args)`` on a daemon thread and return its future.

    Cancelling the future (as ``asyncio.wait_for`` does on timeout) only
    stops the caller from waiting; the thread runs to completion and its
    result is dropped.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future[T] = loop.create_future()
    call = functools.partial(func, *args)

    def settle(result: Any, error: BaseException | None) -> None:
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)

    def worker() -> None:
        result: Any = None
        error: BaseException | None = None
        try:
            result = call()
        except Exception as exc:
            error = exc
        try:
            loop.call_soon_threadsafe(settle, result, error)
        except RuntimeError:
            logger.debug(
                "Event loop closed before %s finished, result dropped",
                getattr(func, "__qualname__", func),
            )

    threading.Thread(
        target=worker,
        name=f"shopmate-{getattr(func, '__name__', 'call')}",
        daemon=True,
    ).start()
    return future
