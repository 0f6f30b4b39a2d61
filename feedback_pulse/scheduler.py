"""Timer service for delayed, cancellable callbacks.

One daemon thread sleeps on a condition variable until the earliest task is
due and hands it to the shared ThreadPoolExecutor, so timers never get a
thread of their own and callers are never blocked.

• schedule() – run a callable after a delay (seconds); returns a task id.
• cancel() – withdraw a task that has not been handed to the executor yet.
• pending() – number of tasks still waiting.
• shutdown() – stop the timer thread and join it.

The real-time distributor uses it for poll ticks and reconnect backoff.
"""
from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from concurrent.futures import Executor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict

logger = logging.getLogger(__name__)


@dataclass(order=True, slots=True)
class _Timer:
    """Heap entry; ordered by due time, then id for FIFO among equal times."""

    due: float
    task_id: int
    callback: Callable[..., Any] = field(compare=False)
    args: tuple = field(compare=False, default=())
    kwargs: Dict[str, Any] = field(compare=False, default_factory=dict)
    cancelled: bool = field(compare=False, default=False)


class Scheduler:
    """A minimal, thread-safe scheduler for delayed callbacks."""

    def __init__(self, executor: Executor) -> None:
        self._executor = executor
        self._cond = threading.Condition()
        self._heap: list[_Timer] = []
        self._live: Dict[int, _Timer] = {}
        self._ids = itertools.count()
        self._running = True
        self._thread = threading.Thread(target=self._loop, daemon=True, name="scheduler")
        self._thread.start()
        logger.info("Scheduler started.")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def schedule(
        self,
        delay_seconds: float,
        callback: Callable[..., Any],
        *args: Any,
        **kwargs: Any,
    ) -> int:
        """Queue *callback* to run after *delay_seconds* and return its task id."""
        if delay_seconds < 0:
            raise ValueError("delay_seconds must be non-negative")
        timer = _Timer(time.monotonic() + delay_seconds, next(self._ids), callback, args, kwargs)
        with self._cond:
            heapq.heappush(self._heap, timer)
            self._live[timer.task_id] = timer
            self._cond.notify()
        return timer.task_id

    def cancel(self, task_id: int) -> bool:
        """Withdraw *task_id*.

        Returns *False* when the task is unknown or already dispatched; a task
        handed to the executor cannot be recalled.
        """
        with self._cond:
            timer = self._live.pop(task_id, None)
            if timer is None:
                return False
            # Lazy deletion: the loop discards cancelled entries when they surface.
            timer.cancelled = True
            self._cond.notify()
            return True

    def pending(self) -> int:
        with self._cond:
            return len(self._live)

    def shutdown(self) -> None:
        """Stop the timer thread; tasks still queued are dropped."""
        with self._cond:
            self._running = False
            dropped = len(self._live)
            self._live.clear()
            self._cond.notify()
        self._thread.join()
        logger.info("Scheduler shut down.", extra={"dropped_tasks": dropped})

    # ------------------------------------------------------------------
    # Timer thread
    # ------------------------------------------------------------------
    def _next_due(self) -> _Timer | None:
        """Block until a task is due; *None* means shutdown.  Caller holds the lock."""
        while self._running:
            while self._heap and self._heap[0].cancelled:
                heapq.heappop(self._heap)
            if not self._heap:
                self._cond.wait()
                continue
            remaining = self._heap[0].due - time.monotonic()
            if remaining > 0:
                # Woken early by schedule(), cancel() or shutdown().
                self._cond.wait(timeout=remaining)
                continue
            timer = heapq.heappop(self._heap)
            self._live.pop(timer.task_id, None)
            return timer
        return None

    def _loop(self) -> None:
        while True:
            with self._cond:
                timer = self._next_due()
            if timer is None:
                break
            # Submit outside the lock so a callback may schedule or cancel.
            try:
                self._executor.submit(timer.callback, *timer.args, **timer.kwargs)
            except Exception:  # pragma: no cover – log and keep going
                logger.exception("Error submitting scheduled task %s", timer.task_id)
