"""Tests for RealTimeDistributor connection handling and fan-out."""
from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from feedback_pulse.realtime.distributor import RealTimeDistributor
from feedback_pulse.realtime.events import ConnectionState, DistributionEvent


class TestInitialize:
    def test_connects_with_token_and_timeout(self, distributor, factory, scheduler, token_store):
        state = distributor.initialize("abc").result()

        assert state is ConnectionState.CONNECTED
        assert factory.calls == [("ws://127.0.0.1:8001/ws?token=abc", 5.0)]
        assert factory.last.started
        assert token_store.get() == "abc"
        assert scheduler.pending() == 0
        assert distributor.get_status().connection_type == "websocket"

    def test_uses_stored_token_when_none_given(self, distributor, factory, token_store):
        token_store.set("stored")

        distributor.initialize().result()

        assert factory.calls[0][0].endswith("?token=stored")

    def test_no_token_means_plain_url(self, distributor, factory):
        distributor.initialize().result()

        assert factory.calls[0][0] == "ws://127.0.0.1:8001/ws"

    def test_failed_connect_falls_back_to_polling(self, distributor, factory, scheduler):
        factory.always_fail = True

        state = distributor.initialize().result()

        assert state is ConnectionState.POLLING
        assert scheduler.delays() == [30.0]
        status = distributor.get_status()
        assert status.connection_type == "polling"
        assert status.is_connected is False

    def test_reinitialize_closes_previous_channel(self, distributor, factory, scheduler):
        distributor.initialize().result()
        first = factory.last

        distributor.initialize().result()

        assert first.closed[0] == 1000
        # A late close from the old channel is ignored.
        first.drop()
        assert scheduler.pending() == 0
        assert distributor.state is ConnectionState.CONNECTED

    def test_overlapping_initialize_keeps_one_channel(self, scheduler, factory, http, token_store):
        gate = threading.Event()
        entered = threading.Event()

        def _gated_factory(url, on_message, on_close, timeout):
            if not factory.channels and not entered.is_set():
                entered.set()
                assert gate.wait(2.0)
            return factory(url, on_message, on_close, timeout)

        received = []
        with ThreadPoolExecutor(max_workers=2) as executor:
            distributor = RealTimeDistributor(
                scheduler=scheduler,
                executor=executor,
                channel_factory=_gated_factory,
                http=http,
                token_store=token_store,
            )
            distributor.subscribe("form_response", lambda p, ts: received.append(p))
            slow = distributor.initialize()
            assert entered.wait(2.0)
            fast = distributor.initialize()
            assert fast.result(timeout=2.0) is ConnectionState.CONNECTED
            gate.set()
            slow.result(timeout=2.0)

        open_channels = [channel for channel in factory.channels if channel.closed is None]
        assert len(factory.channels) == 2
        assert len(open_channels) == 1
        assert distributor.state is ConnectionState.CONNECTED
        open_channels[0].deliver({"type": "form_response", "payload": 1})
        assert received == [1]

    def test_reinitialize_from_polling_restarts_polling(self, distributor, factory, scheduler):
        factory.always_fail = True
        distributor.initialize().result()

        distributor.initialize().result()

        assert distributor.state is ConnectionState.POLLING
        assert scheduler.delays() == [30.0]


class TestReconnect:
    def test_abnormal_close_schedules_backoff(self, distributor, factory, scheduler):
        distributor.initialize().result()

        factory.last.drop(1006)

        assert distributor.state is ConnectionState.ERROR
        assert scheduler.delays() == [1.0]
        assert distributor.get_status().reconnect_attempts == 1

    def test_normal_close_does_not_reconnect(self, distributor, factory, scheduler):
        distributor.initialize().result()

        factory.last.drop(1000)

        assert distributor.state is ConnectionState.DISCONNECTED
        assert scheduler.pending() == 0

    def test_successful_reconnect_resets_attempts(self, distributor, factory, scheduler):
        distributor.initialize().result()
        factory.last.drop()

        scheduler.run_next()

        assert distributor.state is ConnectionState.CONNECTED
        assert distributor.get_status().reconnect_attempts == 0
        assert len(factory.channels) == 2
        assert factory.last.started

    def test_exhausted_attempts_switch_to_polling_for_good(self, distributor, factory, scheduler):
        distributor.initialize().result()
        factory.always_fail = True
        factory.last.drop()

        delays = [scheduler.run_next() for _ in range(5)]

        assert delays == [1.0, 2.0, 4.0, 8.0, 16.0]
        status = distributor.get_status()
        assert status.connection_type == "polling"
        assert status.reconnect_attempts == 5
        # Only the poll timer is left; running it never dials the push channel again.
        assert scheduler.delays() == [30.0]
        connect_calls = len(factory.calls)
        for _ in range(3):
            scheduler.run_next()
        assert len(factory.calls) == connect_calls == 6
        assert scheduler.delays() == [30.0]

    def test_successful_connect_stops_polling(self, distributor, factory, scheduler):
        factory.always_fail = True
        distributor.initialize().result()
        factory.always_fail = False

        distributor.initialize().result()

        assert distributor.state is ConnectionState.CONNECTED
        assert scheduler.pending() == 0


class TestPolling:
    @pytest.fixture(autouse=True)
    def _polling(self, distributor, factory):
        factory.always_fail = True
        distributor.initialize().result()

    def test_poll_tick_delivers_and_reschedules(self, distributor, scheduler, http):
        received = []
        distributor.subscribe("form_response", lambda payload, ts: received.append((payload, ts)))
        http.batches.append([{"type": "form_response", "payload": {"id": 1}, "timestamp": "t1"}])

        scheduler.run_next()

        assert received == [({"id": 1}, "t1")]
        assert http.fetch_calls == 1
        assert scheduler.delays() == [30.0]

    def test_poll_errors_keep_the_loop_alive(self, scheduler, http, caplog):
        http.fail = True

        with caplog.at_level(logging.WARNING):
            scheduler.run_next()

        assert "Polling error" in caplog.text
        assert scheduler.pending() == 1

    def test_set_polling_interval_restarts_timer(self, distributor, scheduler):
        distributor.set_polling_interval(10)

        assert scheduler.delays() == [10]
        scheduler.run_next()
        assert scheduler.delays() == [10]

    @pytest.mark.parametrize("seconds", [0, -5, float("nan"), float("inf")])
    def test_set_polling_interval_rejects_bad_values(self, distributor, seconds):
        with pytest.raises(ValueError):
            distributor.set_polling_interval(seconds)

    def test_malformed_poll_items_are_skipped(self, distributor, scheduler, http):
        received = []
        distributor.subscribe("*", received.append)
        http.batches.append(["junk", {"payload": 1}, {"type": "new_form", "payload": None}])

        scheduler.run_next()

        assert [event.type for event in received] == ["new_form"]


class TestPubSub:
    def test_two_callbacks_each_called_once(self, distributor):
        calls = []
        distributor.subscribe("score_update", lambda p, ts: calls.append("a"))
        distributor.subscribe("score_update", lambda p, ts: calls.append("b"))

        distributor.handle_message({"type": "score_update", "payload": {}})

        assert sorted(calls) == ["a", "b"]

    def test_unsubscribed_callback_is_not_called(self, distributor):
        calls = []
        unsubscribe = distributor.subscribe("score_update", lambda p, ts: calls.append("a"))
        distributor.subscribe("score_update", lambda p, ts: calls.append("b"))

        unsubscribe()
        distributor.handle_message({"type": "score_update", "payload": {}})

        assert calls == ["b"]
        assert distributor.get_status().subscriber_count == 1

    def test_throwing_callback_does_not_block_others(self, distributor, caplog):
        calls = []

        def _boom(payload, ts):
            raise RuntimeError("subscriber bug")

        distributor.subscribe("score_update", _boom)
        distributor.subscribe("score_update", lambda p, ts: calls.append(p))

        with caplog.at_level(logging.ERROR):
            distributor.handle_message({"type": "score_update", "payload": 7})

        assert calls == [7]
        assert "Error in subscriber callback" in caplog.text

    def test_wildcard_receives_full_envelope(self, distributor):
        events = []
        distributor.subscribe("*", events.append)

        distributor.handle_message({"type": "system_alert", "payload": "x", "timestamp": "t"})

        assert events == [DistributionEvent("system_alert", "x", "t")]

    def test_push_messages_delivered_in_order(self, distributor, factory):
        seen = []
        distributor.subscribe("form_response", lambda p, ts: seen.append(p))
        distributor.initialize().result()

        for i in range(3):
            factory.last.deliver({"type": "form_response", "payload": i})

        assert seen == [0, 1, 2]

    def test_malformed_push_message_is_dropped(self, distributor, factory, caplog):
        events = []
        distributor.subscribe("*", events.append)
        distributor.initialize().result()

        with caplog.at_level(logging.WARNING):
            factory.last.deliver("not json")
            factory.last.deliver({"payload": 1})

        assert events == []
        assert distributor.state is ConnectionState.CONNECTED
        assert "Error parsing push message" in caplog.text


class TestSendAndRequestUpdate:
    def test_send_when_connected(self, distributor, factory):
        distributor.initialize().result()

        assert distributor.send("user_activity", {"page": "dash"}) is True

        message = json.loads(factory.last.sent[-1])
        assert message["type"] == "user_activity"
        assert message["payload"] == {"page": "dash"}
        assert message["timestamp"]

    def test_send_when_not_connected(self, distributor):
        assert distributor.send("user_activity", {}) is False

    def test_send_failure_returns_false(self, distributor, factory):
        distributor.initialize().result()
        factory.last.fail_send = True

        assert distributor.send("user_activity", {}) is False

    def test_request_update_over_push_channel(self, distributor, factory, http):
        distributor.initialize().result()

        assert distributor.request_update("analytics", {"formId": "f1"}).result() is True

        message = json.loads(factory.last.sent[-1])
        assert message["type"] == "request_update"
        assert message["payload"] == {"dataType": "analytics", "params": {"formId": "f1"}}
        assert http.requests == []

    def test_request_update_over_http_is_dispatched(self, distributor, http):
        received = []
        distributor.subscribe("analytics_update", lambda p, ts: received.append(p))
        http.update_response = {"score": 80}

        assert distributor.request_update("analytics").result() is True

        assert http.requests == [("analytics", {})]
        assert received == [{"score": 80}]

    def test_request_update_http_failure(self, distributor, http):
        http.fail = True

        assert distributor.request_update("analytics").result() is False


class TestDisconnect:
    def test_full_teardown(self, distributor, factory, scheduler):
        calls = []
        distributor.subscribe("score_update", lambda p, ts: calls.append(p))
        distributor.initialize().result()
        channel = factory.last

        distributor.disconnect()

        assert channel.closed[0] == 1000
        assert distributor.get_status().to_dict() == {
            "isConnected": False,
            "connectionType": "disconnected",
            "subscriberCount": 0,
            "reconnectAttempts": 0,
        }
        distributor.handle_message({"type": "score_update", "payload": 1})
        channel.deliver({"type": "score_update", "payload": 2})
        channel.drop()
        assert calls == []
        assert scheduler.pending() == 0

    def test_cancels_pending_reconnect(self, distributor, factory, scheduler):
        distributor.initialize().result()
        factory.last.drop()
        _, callback, args, kwargs = next(iter(scheduler.tasks.values()))

        distributor.disconnect()
        # A timer that already fired must not reconnect either.
        callback(*args, **kwargs)

        assert scheduler.pending() == 0
        assert len(factory.calls) == 1
        assert distributor.state is ConnectionState.DISCONNECTED

    def test_cancels_polling(self, distributor, factory, scheduler, http):
        factory.always_fail = True
        distributor.initialize().result()

        distributor.disconnect()

        assert scheduler.pending() == 0
        assert http.fetch_calls == 0

    def test_is_idempotent(self, distributor):
        distributor.disconnect()
        distributor.disconnect()

        assert distributor.state is ConnectionState.DISCONNECTED
