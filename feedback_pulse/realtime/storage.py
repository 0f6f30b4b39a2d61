"""Where the distributor keeps the auth token between reconnects."""
from __future__ import annotations

import threading
from typing import Optional, Protocol


class TokenStore(Protocol):
    def get(self) -> Optional[str]: ...

    def set(self, token: Optional[str]) -> None: ...


class InMemoryTokenStore:
    """Process-local token storage."""

    def __init__(self, token: Optional[str] = None) -> None:
        self._token = token
        self._lock = threading.Lock()

    def get(self) -> Optional[str]:
        with self._lock:
            return self._token

    def set(self, token: Optional[str]) -> None:
        with self._lock:
            self._token = token
