"""Unit tests for the event envelope."""
import json

import pytest

from feedback_pulse.exceptions import MalformedEventError
from feedback_pulse.realtime.events import DistributionEvent, EventType


def test_create_stamps_utc_timestamp():
    event = DistributionEvent.create(EventType.SCORE_UPDATE, {"formId": "f"})

    assert event.type == "score_update"
    assert event.timestamp.endswith("Z")


def test_from_dict_keeps_fields():
    event = DistributionEvent.from_dict({"type": "new_form", "payload": [1], "timestamp": "2024-01-01T00:00:00Z"})

    assert event == DistributionEvent("new_form", [1], "2024-01-01T00:00:00Z")


def test_missing_timestamp_is_filled_in():
    assert DistributionEvent.from_dict({"type": "new_form"}).timestamp


@pytest.mark.parametrize("data", [None, [], "text", {"payload": 1}, {"type": ""}, {"type": 3}])
def test_malformed_envelopes(data):
    with pytest.raises(MalformedEventError):
        DistributionEvent.from_dict(data)


def test_from_json_rejects_invalid_json():
    with pytest.raises(MalformedEventError):
        DistributionEvent.from_json("{not json")


def test_json_roundtrip():
    event = DistributionEvent("user_activity", {"page": "home"}, "t")

    assert json.loads(event.to_json()) == {"type": "user_activity", "payload": {"page": "home"}, "timestamp": "t"}
    assert DistributionEvent.from_json(event.to_json()) == event


def test_malformed_event_error_is_value_error():
    assert issubclass(MalformedEventError, ValueError)
