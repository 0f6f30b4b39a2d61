"""Unit tests for the custom Scheduler class."""
from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from feedback_pulse.scheduler import Scheduler


class TestScheduler:
    """Verify Scheduler executes callbacks and handles edge-cases."""

    def test_schedule_executes_callback_after_delay(self):
        """Callback should run after the specified delay using the executor."""
        executed = threading.Event()

        def _callback(arg: str) -> None:  # noqa: D401 – simple test function
            assert arg == "hello"
            executed.set()

        with ThreadPoolExecutor(max_workers=2) as executor:
            sched = Scheduler(executor)
            sched.schedule(0.05, _callback, "hello")  # 50 ms delay

            # Wait up to 0.5 s for callback to fire.
            assert executed.wait(0.5), "Scheduled callback did not execute in time"
            sched.shutdown()

    def test_schedule_negative_delay_raises(self):
        with ThreadPoolExecutor(max_workers=1) as executor:
            sched = Scheduler(executor)
            with pytest.raises(ValueError):
                sched.schedule(-1, lambda: None)
            sched.shutdown()

    def test_cancel_prevents_execution(self):
        executed = threading.Event()

        with ThreadPoolExecutor(max_workers=1) as executor:
            sched = Scheduler(executor)
            task_id = sched.schedule(0.1, executed.set)
            assert sched.pending() == 1

            assert sched.cancel(task_id) is True
            assert sched.pending() == 0
            assert not executed.wait(0.3)
            sched.shutdown()

    def test_cancel_unknown_or_finished_task(self):
        executed = threading.Event()

        with ThreadPoolExecutor(max_workers=1) as executor:
            sched = Scheduler(executor)
            task_id = sched.schedule(0, executed.set)
            assert executed.wait(0.5)
            # Give the loop a moment to pop the item.
            time.sleep(0.01)

            assert sched.cancel(task_id) is False
            assert sched.cancel(9999) is False
            sched.shutdown()

    def test_cancel_keeps_other_tasks(self):
        first = threading.Event()
        second = threading.Event()

        with ThreadPoolExecutor(max_workers=2) as executor:
            sched = Scheduler(executor)
            first_id = sched.schedule(0.05, first.set)
            sched.schedule(0.05, second.set)
            sched.cancel(first_id)

            assert second.wait(0.5)
            assert not first.is_set()
            sched.shutdown()

    def test_shutdown_drops_queued_tasks(self):
        executed = threading.Event()

        with ThreadPoolExecutor(max_workers=1) as executor:
            sched = Scheduler(executor)
            sched.schedule(0.2, executed.set)
            sched.shutdown()

            assert sched.pending() == 0
            assert not executed.wait(0.4)

    def test_shutdown_stops_background_thread(self):
        with ThreadPoolExecutor(max_workers=1) as executor:
            sched = Scheduler(executor)
            # Scheduler thread should be alive initially
            assert sched._thread.is_alive()
            sched.shutdown()
            # After shutdown, thread should have terminated
            assert not sched._thread.is_alive()
