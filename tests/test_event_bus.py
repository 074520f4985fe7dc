"""Tests for donorconnect.events - the simulation event bus."""

from __future__ import annotations

import pytest

from donorconnect.events import (
    ACTIVITY_EVENTS,
    BROADCAST_NAMES,
    BroadcastSink,
    EventBus,
    EventRecord,
    EventType,
    SubscriberRegistry,
    broadcast_name,
)


# ===========================================================================
# EventType / broadcast names
# ===========================================================================

class TestBroadcastNames:
    def test_every_event_type_has_a_broadcast_name(self):
        assert set(BROADCAST_NAMES) == set(EventType)

    @pytest.mark.parametrize(
        "event_type,expected",
        [
            (EventType.DONATION, "donorDonation"),
            (EventType.COMMUNICATION, "donorCommunication"),
            (EventType.PROFILE_UPDATE, "donorProfileUpdate"),
            (EventType.ENGAGEMENT, "donorEngagement"),
            (EventType.SIMULATION_STARTED, "simulationStarted"),
            (EventType.SIMULATION_PAUSED, "simulationPaused"),
            (EventType.SIMULATION_STOPPED, "simulationStopped"),
        ],
    )
    def test_known_names(self, event_type, expected):
        assert broadcast_name(event_type) == expected
        assert broadcast_name(event_type.value) == expected

    def test_unknown_type_raises(self):
        with pytest.raises(ValueError):
            broadcast_name("refund")

    def test_activity_events(self):
        assert EventType.DONATION in ACTIVITY_EVENTS
        assert EventType.STATUS_CHANGE not in ACTIVITY_EVENTS
        assert EventType.SIMULATION_STARTED not in ACTIVITY_EVENTS

    def test_record_to_dict(self):
        record = EventRecord(type=EventType.DONATION, data={"amount": 5})
        d = record.to_dict()
        assert d["type"] == "donation"
        assert d["data"] == {"amount": 5}
        assert "timestamp" in d
        assert record.broadcast_name == "donorDonation"


# ===========================================================================
# SubscriberRegistry
# ===========================================================================

class TestSubscriberRegistry:
    def test_add_is_idempotent(self):
        registry = SubscriberRegistry()
        cb = lambda record: None
        registry.add(cb)
        registry.add(cb)
        assert len(registry) == 1
        assert cb in registry

    def test_remove_absent_is_noop(self):
        registry = SubscriberRegistry()
        registry.remove(lambda record: None)
        assert len(registry) == 0


# ===========================================================================
# EventBus
# ===========================================================================

class TestEventBus:
    def test_delivers_in_subscription_order(self):
        bus = EventBus()
        calls = []
        bus.subscribe(lambda r: calls.append("first"))
        bus.subscribe(lambda r: calls.append("second"))
        bus.publish(EventType.DONATION, {"amount": 10})
        assert calls == ["first", "second"]

    def test_resubscribing_delivers_once(self):
        bus = EventBus()
        received = []

        def cb(record):
            received.append(record)

        bus.subscribe(cb)
        bus.subscribe(cb)
        bus.publish(EventType.COMMUNICATION, {})
        assert len(received) == 1
        assert bus.subscriber_count == 1

    def test_throwing_subscriber_does_not_block_others(self):
        bus = EventBus()
        received = []

        def bad(record):
            raise RuntimeError("subscriber blew up")

        bus.subscribe(bad)
        bus.subscribe(lambda r: received.append(r.type))
        bus.publish(EventType.DONATION, {"amount": 1})
        assert received == [EventType.DONATION]

    def test_unsubscribe_function(self):
        bus = EventBus()
        received = []
        unsubscribe = bus.subscribe(received.append)
        unsubscribe()
        bus.publish(EventType.DONATION, {})
        assert received == []
        # Second call is harmless.
        unsubscribe()
        bus.unsubscribe(received.append)

    def test_publish_accepts_string_type(self):
        bus = EventBus()
        record = bus.publish("profile_update", {"donorId": "d1"})
        assert record.type is EventType.PROFILE_UPDATE
        assert record.data == {"donorId": "d1"}

    def test_publish_unknown_type_raises(self):
        bus = EventBus()
        with pytest.raises(ValueError):
            bus.publish("refund", {})

    def test_detail_is_copied(self):
        bus = EventBus()
        detail = {"amount": 3}
        record = bus.publish(EventType.DONATION, detail)
        detail["amount"] = 99
        assert record.data["amount"] == 3

    def test_publish_reaches_broadcast_listeners(self):
        bus = EventBus()
        heard = []
        bus.broadcasts.add_listener("donorDonation", lambda r: heard.append(r.data))
        bus.broadcasts.add_listener("simulationStarted", lambda r: heard.append("wrong"))
        bus.publish(EventType.DONATION, {"amount": 25})
        assert heard == [{"amount": 25}]

    def test_broadcast_listener_without_subscription(self):
        """Broadcast listeners see events even with no registry subscribers."""
        bus = EventBus()
        names = []
        bus.broadcasts.add_forwarder(lambda name, record: names.append(name))
        bus.publish(EventType.SIMULATION_PAUSED, {})
        bus.publish(EventType.ENGAGEMENT, {})
        assert bus.subscriber_count == 0
        assert names == ["simulationPaused", "donorEngagement"]

    def test_extra_sink(self):
        class Recorder:
            def __init__(self):
                self.records = []

            def deliver(self, record):
                self.records.append(record)

        sink = Recorder()
        bus = EventBus(sinks=[sink])
        bus.add_sink(sink)
        bus.publish(EventType.STATUS_CHANGE, {"status": "LYBUNT"})
        assert len(sink.records) == 1


# ===========================================================================
# BroadcastSink
# ===========================================================================

class TestBroadcastSink:
    def test_listener_unsubscribe(self):
        sink = BroadcastSink()
        heard = []
        remove = sink.add_listener("donorDonation", heard.append)
        assert sink.listener_count("donorDonation") == 1
        remove()
        assert sink.listener_count() == 0
        sink.deliver(EventRecord(type=EventType.DONATION))
        assert heard == []

    def test_failing_forwarder_is_isolated(self):
        sink = BroadcastSink()
        heard = []

        def broken(name, record):
            raise RuntimeError("socket closed")

        sink.add_forwarder(broken)
        sink.add_forwarder(lambda name, record: heard.append(name))
        sink.deliver(EventRecord(type=EventType.BONDING_STARTED))
        assert heard == ["bondingStarted"]

    def test_remove_forwarder(self):
        sink = BroadcastSink()
        heard = []
        fwd = lambda name, record: heard.append(name)
        remove = sink.add_forwarder(fwd)
        remove()
        sink.deliver(EventRecord(type=EventType.DONATION))
        assert heard == []
