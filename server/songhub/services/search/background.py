"""Bounded worker pool for best-effort background work.

Enhancement and indexing run here, off the request path. The pool never
blocks a caller: when ``max_pending`` tasks are already queued or running,
new submissions are dropped with a warning. Task failures are logged and
swallowed.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from songhub.core.time import format_elapsed

logger = logging.getLogger(__name__)


class BackgroundTaskPool:
    def __init__(
        self, max_workers: int = 4, max_pending: int = 200, name: str = "songhub-bg"
    ) -> None:
        self.max_pending = max(1, max_pending)
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, max_workers), thread_name_prefix=name
        )
        self._pending = 0
        self._closed = False
        self._idle = threading.Condition(threading.Lock())

    @property
    def pending(self) -> int:
        with self._idle:
            return self._pending

    def submit(
        self, fn: Callable[..., Any], *args: Any, name: str | None = None, **kwargs: Any
    ) -> bool:
        """Queue ``fn(*args, **kwargs)``. Returns False if the task was dropped."""
        task_name = name or getattr(fn, "__name__", "task")
        with self._idle:
            if self._closed:
                logger.warning("Background pool closed, dropping %s", task_name)
                return False
            if self._pending >= self.max_pending:
                logger.warning(
                    "Background queue full (%d pending), dropping %s", self._pending, task_name
                )
                return False
            self._pending += 1

        try:
            self._executor.submit(self._run, task_name, fn, args, kwargs)
        except RuntimeError:
            self._finish()
            logger.warning("Background executor shut down, dropping %s", task_name)
            return False
        return True

    def _run(self, task_name: str, fn: Callable[..., Any], args: tuple, kwargs: dict) -> None:
        started = time.perf_counter()
        try:
            fn(*args, **kwargs)
        except Exception:
            logger.exception("Background task %s failed", task_name)
        else:
            logger.debug("Background task %s finished in %s", task_name, format_elapsed(started))
        finally:
            self._finish()

    def _finish(self) -> None:
        with self._idle:
            self._pending -= 1
            if self._pending == 0:
                self._idle.notify_all()

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no task is queued or running. False on timeout."""
        with self._idle:
            return self._idle.wait_for(lambda: self._pending == 0, timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        with self._idle:
            self._closed = True
        self._executor.shutdown(wait=wait)
