"""Fire-and-forget dispatch of pull request events to worker threads."""

from __future__ import annotations

import concurrent.futures
import threading
from typing import Callable

from . import exec as exec_util
from . import log
from .models import PullRequestEvent

EventHandler = Callable[[PullRequestEvent, exec_util.CancelToken], object]


class EventDispatcher:
    """Bounded task spawner for event handling.

    ``submit`` returns immediately. At most ``max_workers`` events run at once
    and at most ``max_pending`` are admitted (running plus queued); further
    events are logged and dropped. Every task receives a ``CancelToken``
    sharing the dispatcher's shutdown event, with an optional per-task
    deadline.
    """

    def __init__(
        self,
        handler: EventHandler,
        *,
        max_workers: int = 4,
        max_pending: int = 64,
        task_timeout_seconds: float | None = None,
        logger: log.Logger | None = None,
    ) -> None:
        self._handler = handler
        self._task_timeout_seconds = task_timeout_seconds
        self._logger = logger or log.get_logger("dispatch")
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="prow-experiment"
        )
        self._slots = threading.BoundedSemaphore(max(max_pending, max_workers))
        self._shutdown_event = threading.Event()
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def submit(self, event: PullRequestEvent) -> concurrent.futures.Future[object] | None:
        """Schedule ``event`` for handling; returns ``None`` when it was dropped."""
        number = event.pull_request.number
        with self._lock:
            if self._closed:
                self._logger.warning(f"dispatcher is shut down; dropping PR {number}")
                return None
            if not self._slots.acquire(blocking=False):
                self._logger.warning(f"event queue is full; dropping PR {number}")
                return None
            token = exec_util.CancelToken.with_timeout(
                self._task_timeout_seconds, event=self._shutdown_event
            )
            future = self._executor.submit(self._handler, event, token)
        future.add_done_callback(lambda done: self._finish(done, number))
        self._logger.debug(f"dispatched PR {number}")
        return future

    def _finish(self, future: concurrent.futures.Future[object], number: int) -> None:
        self._slots.release()
        if future.cancelled():
            self._logger.warning(f"handling of PR {number} was cancelled before it started")
            return
        exc = future.exception()
        if exc is not None:
            self._logger.error(f"handling of PR {number} failed: {exc}")

    def shutdown(self, *, cancel_running: bool = True, wait: bool = True) -> None:
        """Stop admitting events and release the worker threads.

        With ``cancel_running`` the shared cancel event fires, which kills the
        git processes of in-flight tasks and drops queued ones.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
        if cancel_running:
            self._shutdown_event.set()
        self._logger.info("Shutting down dispatcher...")
        self._executor.shutdown(wait=wait, cancel_futures=cancel_running)
