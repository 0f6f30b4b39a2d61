"""Publish/subscribe hub that pushes server events to dashboard subscribers.

The distributor prefers a persistent push channel and falls back to
fixed-interval polling:

• initialize() – try the push channel (bounded by the connect timeout);
  on failure start polling.
• an abnormal close of the push channel schedules reconnects with
  exponential backoff; once the attempts are used up the distributor polls
  for the rest of the session.
• subscribe() – register a callback for one event type or ``'*'``.
• disconnect() – full teardown: channel closed, timers cancelled,
  subscribers cleared.

Network I/O never runs on the caller's thread: connects and one-shot update
requests go through the executor, timers through the :class:`Scheduler`.
Dispatch to subscribers is serialized, so push messages reach callbacks in
arrival order.  A poll tick and a ``request_update`` may deliver the same
logical update twice; events are idempotent refresh signals, so no
de-duplication is done.
"""
from __future__ import annotations

import itertools
import logging
import math
import threading
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from feedback_pulse.exceptions import MalformedEventError, TransportError
from feedback_pulse.realtime.config import DistributorConfig
from feedback_pulse.realtime.events import (
    WILDCARD,
    ConnectionState,
    DistributionEvent,
    EventType,
    utc_now_iso,
)
from feedback_pulse.realtime.http_client import PollingClient
from feedback_pulse.realtime.registry import SubscriberRegistry
from feedback_pulse.realtime.storage import InMemoryTokenStore, TokenStore
from feedback_pulse.realtime.transport import (
    NORMAL_CLOSURE,
    ChannelFactory,
    PushChannel,
    WebSocketChannel,
    build_ws_url,
)
from feedback_pulse.scheduler import Scheduler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConnectionStatus:
    is_connected: bool
    connection_type: str
    subscriber_count: int
    reconnect_attempts: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isConnected": self.is_connected,
            "connectionType": self.connection_type,
            "subscriberCount": self.subscriber_count,
            "reconnectAttempts": self.reconnect_attempts,
        }


class RealTimeDistributor:
    """Transport-agnostic event fan-out with push-then-poll delivery."""

    def __init__(
        self,
        config: Optional[DistributorConfig] = None,
        *,
        scheduler: Scheduler,
        executor: Executor,
        channel_factory: ChannelFactory = WebSocketChannel.open,
        http: Optional[PollingClient] = None,
        token_store: Optional[TokenStore] = None,
        registry: Optional[SubscriberRegistry] = None,
    ) -> None:
        self.config = config or DistributorConfig()
        self._scheduler = scheduler
        self._executor = executor
        self._channel_factory = channel_factory
        self._token_store = token_store or InMemoryTokenStore()
        self._http = http or PollingClient(self.config, token_store=self._token_store)
        self._registry = registry or SubscriberRegistry()

        self._lock = threading.RLock()
        self._dispatch_lock = threading.RLock()
        self._state = ConnectionState.DISCONNECTED
        self._channel: Optional[PushChannel] = None
        self._channel_id: Optional[int] = None
        self._channel_ids = itertools.count(1)
        self._reconnect_attempts = 0
        self._reconnect_task: Optional[int] = None
        self._poll_task: Optional[int] = None
        self._polling = False
        self._polling_interval = self.config.polling_interval
        # Bumped by initialize() and disconnect(); callbacks from an older generation are ignored.
        self._generation = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def state(self) -> ConnectionState:
        with self._lock:
            return self._state

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    def initialize(self, auth_token: Optional[str] = None) -> "Future[ConnectionState]":
        """Start delivery: push channel if it opens in time, polling otherwise.

        A given *auth_token* is saved in the token store; without one the
        stored token is used.  Returns a future resolving to the state
        reached once the first connect attempt has finished.
        """
        if auth_token is not None:
            self._token_store.set(auth_token)

        with self._lock:
            # A connect still in flight from an earlier call closes its channel on attach.
            self._generation += 1
            generation = self._generation
            self._cancel_reconnect_locked()
            self._cancel_poll_locked()
            self._polling = False
            self._reconnect_attempts = 0
            previous = self._detach_channel_locked()
            self._state = ConnectionState.CONNECTING

        if previous is not None:
            previous.close(NORMAL_CLOSURE, "Re-initializing")
        return self._executor.submit(self._initial_connect, generation)

    def subscribe(self, event_type: str, callback: Callable[..., Any]) -> Callable[[], None]:
        """Register *callback* and return a function that unregisters it.

        Exact-type callbacks are called as ``callback(payload, timestamp)``;
        wildcard (``'*'``) callbacks receive the whole :class:`DistributionEvent`.
        """
        return self._registry.add(event_type, callback)

    def send(self, event_type: str, payload: Any = None) -> bool:
        """Send an event over the push channel.

        Best effort: returns *False* instead of raising when not connected
        or when the write fails.
        """
        with self._lock:
            channel = self._channel if self._state is ConnectionState.CONNECTED else None
        if channel is None:
            return False
        try:
            channel.send(DistributionEvent.create(event_type, payload).to_json())
        except (TransportError, TypeError, ValueError) as exc:
            logger.warning("Failed to send %s over push channel: %s", event_type, exc)
            return False
        return True

    def request_update(self, data_type: str, params: Optional[Dict[str, Any]] = None) -> "Future[bool]":
        """Ask the server for fresh *data_type* data.

        Connected: sent as a ``request_update`` push message.  Otherwise a
        one-shot HTTP request whose answer is delivered to subscribers as a
        ``<data_type>_update`` event, exactly like a pushed one.
        """
        params = params or {}
        if self.is_connected:
            future: "Future[bool]" = Future()
            future.set_result(self.send(EventType.REQUEST_UPDATE, {"dataType": data_type, "params": params}))
            return future
        return self._executor.submit(self._request_update_over_http, data_type, params)

    def handle_message(self, data: Any) -> bool:
        """Deliver one decoded envelope to subscribers; malformed ones are dropped."""
        try:
            event = DistributionEvent.from_dict(data)
        except MalformedEventError as exc:
            logger.warning("Dropping malformed message: %s", exc)
            return False
        self._dispatch(event)
        return True

    def poll_once(self) -> int:
        """Fetch one batch from the polling endpoint; return events delivered."""
        try:
            batch = self._http.fetch_updates()
        except TransportError as exc:
            logger.warning("Polling error: %s", exc)
            return 0
        return sum(1 for item in batch if self.handle_message(item))

    def set_polling_interval(self, seconds: float) -> None:
        """Change the polling interval, restarting an active poll loop."""
        if not math.isfinite(seconds) or seconds <= 0:
            raise ValueError("polling interval must be a positive finite number")
        with self._lock:
            self._polling_interval = seconds
            if self._polling:
                self._cancel_poll_locked()
                self._poll_task = self._scheduler.schedule(seconds, self._poll_tick, self._generation)

    def get_status(self) -> ConnectionStatus:
        with self._lock:
            state = self._state
            attempts = self._reconnect_attempts
        if state is ConnectionState.CONNECTED:
            connection_type = "websocket"
        else:
            connection_type = state.value
        return ConnectionStatus(
            is_connected=state is ConnectionState.CONNECTED,
            connection_type=connection_type,
            subscriber_count=self._registry.count(),
            reconnect_attempts=attempts,
        )

    def disconnect(self) -> None:
        """Tear everything down.  Safe to call from any state, any number of times."""
        with self._lock:
            self._generation += 1
            channel = self._detach_channel_locked()
            self._cancel_reconnect_locked()
            self._cancel_poll_locked()
            self._polling = False
            self._reconnect_attempts = 0
            self._state = ConnectionState.DISCONNECTED
        self._registry.clear()
        if channel is not None:
            channel.close(NORMAL_CLOSURE, "Client disconnect")
        logger.info("Real-time distributor disconnected")

    # ------------------------------------------------------------------
    # Push channel
    # ------------------------------------------------------------------
    def _initial_connect(self, generation: int) -> ConnectionState:
        try:
            self._open_channel(generation)
        except TransportError as exc:
            logger.info("Push channel unavailable (%s); using polling mode", exc)
            self._start_polling(generation)
        except Exception:  # pragma: no cover – executor task must settle the state
            logger.exception("Unexpected error opening push channel")
            self._start_polling(generation)
        return self.state

    def _open_channel(self, generation: int) -> bool:
        """Open and attach a channel.  Raises :class:`TransportError` on failure."""
        channel_id = next(self._channel_ids)
        url = build_ws_url(self.config.ws_url, self._token_store.get())

        def _on_close(code: int, reason: str) -> None:
            self._on_channel_closed(generation, channel_id, code, reason)

        channel = self._channel_factory(url, self._on_push_message, _on_close, self.config.connect_timeout)

        with self._lock:
            superseded = generation != self._generation
            if not superseded:
                self._channel = channel
                self._channel_id = channel_id
                self._state = ConnectionState.CONNECTED
                self._reconnect_attempts = 0
                self._cancel_reconnect_locked()
                self._cancel_poll_locked()
                self._polling = False
        if superseded:
            channel.close(NORMAL_CLOSURE, "Client disconnect")
            return False
        channel.start()
        logger.info("push_channel_connected", extra={"generation": generation})
        return True

    def _on_push_message(self, text: str) -> None:
        try:
            event = DistributionEvent.from_json(text)
        except MalformedEventError as exc:
            logger.warning("Error parsing push message: %s", exc)
            return
        self._dispatch(event)

    def _on_channel_closed(self, generation: int, channel_id: int, code: int, reason: str) -> None:
        with self._lock:
            if generation != self._generation or channel_id != self._channel_id:
                return
            self._channel = None
            self._channel_id = None
            if code == NORMAL_CLOSURE:
                self._state = ConnectionState.DISCONNECTED
                return
            self._state = ConnectionState.ERROR
        logger.warning("Push channel closed abnormally (%s %s)", code, reason)
        self._handle_reconnect(generation)

    def _handle_reconnect(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            attempts = self._reconnect_attempts
            exhausted = attempts >= self.config.max_reconnect_attempts
            if not exhausted:
                self._reconnect_attempts = attempts = attempts + 1
                delay = self.config.reconnect_base_delay * 2 ** (attempts - 1)
                self._reconnect_task = self._scheduler.schedule(delay, self._reconnect, generation)
        if exhausted:
            logger.info("Max reconnection attempts reached, falling back to polling")
            self._start_polling(generation)
        else:
            logger.info(
                "Attempting to reconnect push channel (%d/%d) in %.1fs",
                attempts,
                self.config.max_reconnect_attempts,
                delay,
            )

    def _reconnect(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._reconnect_task = None
            self._state = ConnectionState.CONNECTING
        try:
            self._open_channel(generation)
        except Exception as exc:  # noqa: BLE001 – any failure counts as a failed attempt
            logger.warning("Reconnect attempt failed: %s", exc)
            with self._lock:
                if generation != self._generation:
                    return
                self._state = ConnectionState.ERROR
            self._handle_reconnect(generation)

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------
    def _start_polling(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._state = ConnectionState.POLLING
            if self._polling:
                return
            self._polling = True
            interval = self._polling_interval
            self._poll_task = self._scheduler.schedule(interval, self._poll_tick, generation)
        logger.info("Starting polling for real-time updates every %.1fs", interval)

    def _poll_tick(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or not self._polling:
                return
            self._poll_task = None
        try:
            self.poll_once()
        except Exception:  # pragma: no cover – keep the poll loop alive
            logger.exception("Polling tick failed")
        finally:
            with self._lock:
                if generation == self._generation and self._polling and self._poll_task is None:
                    self._poll_task = self._scheduler.schedule(
                        self._polling_interval, self._poll_tick, generation
                    )

    def _request_update_over_http(self, data_type: str, params: Dict[str, Any]) -> bool:
        try:
            data = self._http.request_update(data_type, params)
        except TransportError as exc:
            logger.warning("Error requesting %s update: %s", data_type, exc)
            return False
        return self.handle_message(
            {"type": f"{data_type}_update", "payload": data, "timestamp": utc_now_iso()}
        )

    # ------------------------------------------------------------------
    # Dispatch & helpers
    # ------------------------------------------------------------------
    def _dispatch(self, event: DistributionEvent) -> None:
        with self._dispatch_lock:
            if event.type != WILDCARD:
                for callback in self._registry.callbacks_for(event.type):
                    try:
                        callback(event.payload, event.timestamp)
                    except Exception:  # noqa: BLE001 – isolate subscribers
                        logger.exception("Error in subscriber callback for %s", event.type)
            for callback in self._registry.callbacks_for(WILDCARD):
                try:
                    callback(event)
                except Exception:  # noqa: BLE001 – isolate subscribers
                    logger.exception("Error in global subscriber callback")

    def _detach_channel_locked(self) -> Optional[PushChannel]:
        channel = self._channel
        self._channel = None
        self._channel_id = None
        return channel

    def _cancel_reconnect_locked(self) -> None:
        if self._reconnect_task is not None:
            self._scheduler.cancel(self._reconnect_task)
            self._reconnect_task = None

    def _cancel_poll_locked(self) -> None:
        if self._poll_task is not None:
            self._scheduler.cancel(self._poll_task)
            self._poll_task = None
