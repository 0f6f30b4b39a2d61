"""Push-channel transport.

The distributor only talks to the small :class:`PushChannel` protocol, so
tests can substitute an in-memory channel.  :class:`WebSocketChannel` is the
production implementation on top of the ``websockets`` synchronous client:
the handshake runs in the caller's thread (bounded by ``open_timeout``) and
a daemon reader thread delivers frames in arrival order.
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, Protocol
from urllib.parse import urlencode

from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.sync.client import ClientConnection, connect

from feedback_pulse.exceptions import TransportError

logger = logging.getLogger(__name__)

NORMAL_CLOSURE = 1000
ABNORMAL_CLOSURE = 1006

MessageHandler = Callable[[str], None]
CloseHandler = Callable[[int, str], None]


class PushChannel(Protocol):
    def start(self) -> None: ...

    def send(self, text: str) -> None: ...

    def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None: ...


# (url, on_message, on_close, timeout) -> channel; raises TransportError.
ChannelFactory = Callable[[str, MessageHandler, CloseHandler, float], PushChannel]


def build_ws_url(ws_url: str, token: Optional[str]) -> str:
    if not token:
        return ws_url
    return f"{ws_url}?{urlencode({'token': token})}"


class WebSocketChannel:
    """A websocket connection plus the thread that reads from it."""

    def __init__(
        self,
        connection: ClientConnection,
        *,
        on_message: MessageHandler,
        on_close: CloseHandler,
    ) -> None:
        self._connection = connection
        self._on_message = on_message
        self._on_close = on_close
        self._reader = threading.Thread(target=self._read_loop, daemon=True, name="push-reader")

    @classmethod
    def open(
        cls,
        url: str,
        on_message: MessageHandler,
        on_close: CloseHandler,
        timeout: float,
    ) -> "WebSocketChannel":
        """Perform the handshake; raise :class:`TransportError` on failure or timeout."""
        try:
            connection = connect(url, open_timeout=timeout)
        except (OSError, WebSocketException) as exc:
            raise TransportError(f"WebSocket connection failed: {exc}") from exc
        logger.info("WebSocket connected to %s", url.split("?", 1)[0])
        return cls(connection, on_message=on_message, on_close=on_close)

    def start(self) -> None:
        self._reader.start()

    def send(self, text: str) -> None:
        try:
            self._connection.send(text)
        except (OSError, WebSocketException) as exc:
            raise TransportError(f"WebSocket send failed: {exc}") from exc

    def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None:
        try:
            self._connection.close(code=code, reason=reason)
        except (OSError, WebSocketException) as exc:
            logger.warning("Error closing WebSocket: %s", exc)

    def _read_loop(self) -> None:
        code, reason = NORMAL_CLOSURE, ""
        try:
            # Iteration stops on a normal close and raises on an abnormal one.
            for message in self._connection:
                if isinstance(message, bytes):
                    message = message.decode("utf-8", errors="replace")
                self._on_message(message)
            # The sans-I/O protocol object records the peer's close frame.
            protocol = self._connection.protocol
            code = protocol.close_code or NORMAL_CLOSURE
            reason = protocol.close_reason or ""
        except ConnectionClosed as exc:
            received = exc.rcvd
            code = received.code if received is not None else ABNORMAL_CLOSURE
            reason = received.reason if received is not None else str(exc)
        except Exception:  # pragma: no cover – reader thread must report the close
            logger.exception("WebSocket reader failed")
            code, reason = ABNORMAL_CLOSURE, "reader failure"
        logger.info("WebSocket disconnected: %s %s", code, reason)
        self._on_close(code, reason)
