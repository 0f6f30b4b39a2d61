"""Configuration constants for the real-time distributor."""
from __future__ import annotations

import os
from dataclasses import dataclass

from feedback_pulse.reporting.config import env_number

DEFAULT_API_URL = "http://127.0.0.1:8001"


@dataclass(frozen=True)
class DistributorConfig:
    """Endpoints, timeouts and backoff parameters (seconds)."""

    base_url: str = DEFAULT_API_URL
    ws_path: str = "/ws"
    updates_path: str = "/realtime/updates"
    request_update_path: str = "/realtime/request-update"
    connect_timeout: float = 5.0
    polling_interval: float = 30.0
    reconnect_base_delay: float = 1.0
    max_reconnect_attempts: int = 5
    http_timeout: float = 10.0

    @property
    def ws_url(self) -> str:
        # http -> ws, https -> wss
        return self.base_url.replace("http", "ws", 1).rstrip("/") + self.ws_path

    @property
    def max_reconnect_delay(self) -> float:
        return self.reconnect_base_delay * 2 ** (self.max_reconnect_attempts - 1)

    @classmethod
    def from_env(cls) -> "DistributorConfig":
        return cls(
            base_url=os.getenv("FEEDBACK_PULSE_API_URL", DEFAULT_API_URL),
            connect_timeout=env_number("FEEDBACK_PULSE_CONNECT_TIMEOUT", cls.connect_timeout, float),
            polling_interval=env_number("FEEDBACK_PULSE_POLL_INTERVAL", cls.polling_interval, float),
            reconnect_base_delay=env_number(
                "FEEDBACK_PULSE_RECONNECT_BASE_DELAY", cls.reconnect_base_delay, float
            ),
            max_reconnect_attempts=env_number(
                "FEEDBACK_PULSE_MAX_RECONNECT_ATTEMPTS", cls.max_reconnect_attempts, int
            ),
        )
