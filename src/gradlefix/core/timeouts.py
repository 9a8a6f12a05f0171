"""Timeout and cancellation helpers for calls into external collaborators."""

from __future__ import annotations

import concurrent.futures
import logging
import threading
from typing import Callable, TypeVar

from gradlefix.core.errors import StageTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")


def call_with_timeout(fn: Callable[[], T], timeout: float | None, stage: str) -> T:
    """Run ``fn`` and return its result, raising StageTimeout if it overruns.

    A ``timeout`` of None or <= 0 calls ``fn`` inline. Exceptions raised by
    ``fn`` propagate unchanged.
    """
    if not timeout or timeout <= 0:
        return fn()

    executor = concurrent.futures.ThreadPoolExecutor(
        max_workers=1, thread_name_prefix=f"gradlefix-{stage}"
    )
    future = executor.submit(fn)
    try:
        return future.result(timeout=timeout)
    except concurrent.futures.TimeoutError:
        logger.warning("Stage %s exceeded %.1fs", stage, timeout)
        raise StageTimeout(stage, timeout) from None
    finally:
        # the worker thread is abandoned on timeout rather than joined
        executor.shutdown(wait=False)


class CancellationToken:
    """Best-effort cancellation flag checked between pipeline stages."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()
