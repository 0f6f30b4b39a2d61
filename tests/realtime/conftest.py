"""Shared doubles for the real-time distributor tests.

Nothing here touches the network or sleeps: timers are run by hand, executor
tasks run inline and the push channel is an in-memory stub.
"""
from __future__ import annotations

import itertools
import json
from concurrent.futures import Executor, Future
from typing import Any, Callable, Dict, List, Tuple

import pytest

from feedback_pulse.exceptions import TransportError
from feedback_pulse.realtime.config import DistributorConfig
from feedback_pulse.realtime.distributor import RealTimeDistributor
from feedback_pulse.realtime.storage import InMemoryTokenStore


class ManualScheduler:
    """Scheduler stand-in whose tasks only run when the test says so."""

    def __init__(self) -> None:
        self.tasks: Dict[int, Tuple[float, Callable[..., Any], tuple, dict]] = {}
        self._ids = itertools.count()

    def schedule(self, delay_seconds, callback, *args, **kwargs) -> int:
        task_id = next(self._ids)
        self.tasks[task_id] = (delay_seconds, callback, args, kwargs)
        return task_id

    def cancel(self, task_id: int) -> bool:
        return self.tasks.pop(task_id, None) is not None

    def pending(self) -> int:
        return len(self.tasks)

    def delays(self) -> List[float]:
        return [task[0] for task in self.tasks.values()]

    def run_next(self) -> float:
        """Run the oldest pending task and return its delay."""
        task_id = min(self.tasks)
        delay, callback, args, kwargs = self.tasks.pop(task_id)
        callback(*args, **kwargs)
        return delay


class InlineExecutor(Executor):
    def submit(self, fn, /, *args, **kwargs):
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except BaseException as exc:  # noqa: BLE001 – mirror a real executor
            future.set_exception(exc)
        return future


class StubChannel:
    def __init__(self, url: str, on_message, on_close) -> None:
        self.url = url
        self.on_message = on_message
        self.on_close = on_close
        self.started = False
        self.sent: List[str] = []
        self.closed: Tuple[int, str] | None = None
        self.fail_send = False

    def start(self) -> None:
        self.started = True

    def send(self, text: str) -> None:
        if self.fail_send:
            raise TransportError("broken pipe")
        self.sent.append(text)

    def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed = (code, reason)

    # test helpers
    def deliver(self, message: Any) -> None:
        self.on_message(message if isinstance(message, str) else json.dumps(message))

    def drop(self, code: int = 1006) -> None:
        self.on_close(code, "connection lost")


class StubChannelFactory:
    """Callable matching ``ChannelFactory``; fails while ``failures`` remain."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, float]] = []
        self.channels: List[StubChannel] = []
        self.failures = 0
        self.always_fail = False

    def __call__(self, url, on_message, on_close, timeout):
        self.calls.append((url, timeout))
        if self.always_fail or self.failures > 0:
            self.failures -= 1
            raise TransportError("connection refused")
        channel = StubChannel(url, on_message, on_close)
        self.channels.append(channel)
        return channel

    @property
    def last(self) -> StubChannel:
        return self.channels[-1]


class StubPollingClient:
    def __init__(self) -> None:
        self.batches: List[List[Any]] = []
        self.fetch_calls = 0
        self.requests: List[Tuple[str, dict]] = []
        self.update_response: Any = {"ok": True}
        self.fail = False

    def fetch_updates(self) -> List[Any]:
        self.fetch_calls += 1
        if self.fail:
            raise TransportError("HTTP 503")
        return self.batches.pop(0) if self.batches else []

    def request_update(self, data_type: str, params: dict) -> Any:
        self.requests.append((data_type, params))
        if self.fail:
            raise TransportError("HTTP 503")
        return self.update_response


@pytest.fixture()
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture()
def factory() -> StubChannelFactory:
    return StubChannelFactory()


@pytest.fixture()
def http() -> StubPollingClient:
    return StubPollingClient()


@pytest.fixture()
def token_store() -> InMemoryTokenStore:
    return InMemoryTokenStore()


@pytest.fixture()
def distributor(scheduler, factory, http, token_store) -> RealTimeDistributor:
    return RealTimeDistributor(
        DistributorConfig(),
        scheduler=scheduler,
        executor=InlineExecutor(),
        channel_factory=factory,
        http=http,
        token_store=token_store,
    )
