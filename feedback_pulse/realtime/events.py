"""Event envelope and connection state types for real-time distribution."""
from __future__ import annotations

import datetime
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict

from feedback_pulse.exceptions import MalformedEventError

WILDCARD = "*"


class EventType:
    """Event types the server is known to emit.  The set is open."""

    FORM_RESPONSE = "form_response"
    SCORE_UPDATE = "score_update"
    ANALYTICS_UPDATE = "analytics_update"
    FORM_STATUS_CHANGE = "form_status_change"
    NEW_FORM = "new_form"
    USER_ACTIVITY = "user_activity"
    SYSTEM_ALERT = "system_alert"
    REQUEST_UPDATE = "request_update"


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    POLLING = "polling"
    ERROR = "error"


def utc_now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class DistributionEvent:
    """A ``{type, payload, timestamp}`` envelope.  Never persisted."""

    type: str
    payload: Any = None
    timestamp: str = ""

    @classmethod
    def create(cls, event_type: str, payload: Any = None) -> "DistributionEvent":
        return cls(type=event_type, payload=payload, timestamp=utc_now_iso())

    @classmethod
    def from_dict(cls, data: Any) -> "DistributionEvent":
        """Build an event from a decoded server message.

        Raises
        ------
        MalformedEventError
            If *data* is not a mapping with a non-empty string ``type``.
        """
        if not isinstance(data, dict):
            raise MalformedEventError(f"Expected an object envelope, got {type(data).__name__}")
        event_type = data.get("type")
        if not isinstance(event_type, str) or not event_type:
            raise MalformedEventError("Envelope is missing a string 'type'")
        timestamp = data.get("timestamp")
        return cls(
            type=event_type,
            payload=data.get("payload"),
            timestamp=str(timestamp) if timestamp is not None else utc_now_iso(),
        )

    @classmethod
    def from_json(cls, raw: str | bytes) -> "DistributionEvent":
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise MalformedEventError("Message is not valid JSON") from exc
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "payload": self.payload, "timestamp": self.timestamp}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())
