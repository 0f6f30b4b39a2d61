"""HTTP client for the polling fallback.

Centralises base-URL and bearer-token handling so the distributor can
simply call:

    client.fetch_updates()
    client.request_update("analytics", {"formId": "f1"})

Both raise :class:`TransportError` on network failures, non-2xx statuses
and undecodable bodies.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from feedback_pulse.exceptions import TransportError
from feedback_pulse.realtime.config import DistributorConfig
from feedback_pulse.realtime.storage import InMemoryTokenStore, TokenStore

logger = logging.getLogger(__name__)


class PollingClient:
    """Thin ``requests`` wrapper for ``/realtime/updates`` and ``/realtime/request-update``."""

    def __init__(
        self,
        config: Optional[DistributorConfig] = None,
        *,
        token_store: Optional[TokenStore] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.config = config or DistributorConfig()
        self.token_store = token_store or InMemoryTokenStore()
        self._session = session or requests.Session()

    def _url(self, path: str) -> str:
        return self.config.base_url.rstrip("/") + path

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self.token_store.get()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _decode(self, response: requests.Response) -> Any:
        try:
            response.raise_for_status()
            return response.json()
        except requests.HTTPError as exc:
            raise TransportError(f"HTTP {response.status_code} from {response.url}") from exc
        except ValueError as exc:
            raise TransportError(f"Undecodable body from {response.url}") from exc

    def fetch_updates(self) -> List[Any]:
        """GET pending updates; a single envelope is returned as a one-item batch."""
        try:
            response = self._session.get(
                self._url(self.config.updates_path),
                headers=self._headers(),
                timeout=self.config.http_timeout,
            )
        except requests.RequestException as exc:
            raise TransportError(f"Polling request failed: {exc}") from exc
        data = self._decode(response)
        if data is None:
            return []
        return data if isinstance(data, list) else [data]

    def request_update(self, data_type: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """POST an update request and return the decoded response body."""
        try:
            response = self._session.post(
                self._url(self.config.request_update_path),
                headers=self._headers(),
                json={"dataType": data_type, "params": params or {}},
                timeout=self.config.http_timeout,
            )
        except requests.RequestException as exc:
            raise TransportError(f"Update request failed: {exc}") from exc
        return self._decode(response)

    def close(self) -> None:
        self._session.close()
