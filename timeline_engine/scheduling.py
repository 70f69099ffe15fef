"""
Background View Worker
======================

Runs view passes off the interactive thread.

LAST-WRITE-WINS:
================
Every submission gets a generation number. Only the newest generation is
current; when an older pass finishes, its result is discarded (callbacks
suppressed). There is no cancellation beyond that: a stale pass still runs
to completion, its output is simply never delivered.

Results are computed by the same pure engines, so scheduling never
changes WHAT is computed, only WHEN it is delivered.
"""

from __future__ import annotations
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional
import logging
import threading

logger = logging.getLogger(__name__)


class ViewTicket:
    """Handle for one submitted view pass."""

    def __init__(self, worker: BackgroundViewWorker, generation: int, future: Future):
        self._worker = worker
        self.generation = generation
        self.future = future

    def is_current(self) -> bool:
        """True while no newer pass has been submitted."""
        return self._worker.current_generation == self.generation

    def done(self) -> bool:
        return self.future.done()

    def result(self, timeout: Optional[float] = None) -> Any:
        """Block for the pass's result, stale or not. Re-raises its exception."""
        return self.future.result(timeout=timeout)

    def current_result(self, timeout: Optional[float] = None) -> Optional[Any]:
        """Block for the result; None if the pass was superseded."""
        value = self.future.result(timeout=timeout)
        return value if self.is_current() else None


class BackgroundViewWorker:
    """
    Thread pool for view passes with last-write-wins delivery.
    """

    def __init__(self, max_workers: int = 1):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="timeline-view"
        )
        self._lock = threading.Lock()
        self._generation = 0
        self._discarded = 0

    @property
    def current_generation(self) -> int:
        with self._lock:
            return self._generation

    @property
    def discarded_count(self) -> int:
        """Passes that finished after being superseded."""
        with self._lock:
            return self._discarded

    def submit(
        self,
        compute: Callable[[], Any],
        on_result: Optional[Callable[[Any], None]] = None,
        on_error: Optional[Callable[[BaseException], None]] = None
    ) -> ViewTicket:
        """
        Schedule `compute` as the newest view pass.

        `on_result` / `on_error` run on the worker thread, and only if this
        pass is still the newest one when it finishes.
        """
        with self._lock:
            self._generation += 1
            generation = self._generation
        future = self._executor.submit(compute)
        ticket = ViewTicket(self, generation, future)
        future.add_done_callback(lambda f: self._deliver(ticket, on_result, on_error))
        return ticket

    def _deliver(
        self,
        ticket: ViewTicket,
        on_result: Optional[Callable[[Any], None]],
        on_error: Optional[Callable[[BaseException], None]]
    ):
        if not ticket.is_current():
            with self._lock:
                self._discarded += 1
            logger.debug("discarded stale view pass (generation %d)", ticket.generation)
            return

        error = ticket.future.exception()
        if error is not None:
            logger.error("view pass %d failed: %s", ticket.generation, error)
            if on_error is not None:
                on_error(error)
            return
        if on_result is not None:
            on_result(ticket.future.result())

    def shutdown(self, wait: bool = True):
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> BackgroundViewWorker:
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown(wait=True)
