"""Process-wide publish/subscribe bus for simulation events.

One ``publish`` call feeds every registered sink.  Two sinks are always
present:

* ``SubscriberRegistry`` -- in-process callbacks, delivered synchronously
  in subscription order.
* ``BroadcastSink`` -- listeners keyed by broadcast name (``donorDonation``,
  ``simulationStarted``...) plus forwarders such as the WebSocket bridge,
  for consumers that never hold a reference to the subscriber registry.

A failing subscriber or listener is logged and skipped; it never stops
delivery to the others.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Protocol

from .types import EventRecord, EventType

logger = logging.getLogger(__name__)

Subscriber = Callable[[EventRecord], Any]
Forwarder = Callable[[str, EventRecord], Any]


class EventSink(Protocol):
    def deliver(self, record: EventRecord) -> None: ...


class SubscriberRegistry:
    """Ordered set of in-process subscriber callbacks."""

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []

    def __len__(self) -> int:
        return len(self._subscribers)

    def __contains__(self, callback: object) -> bool:
        return callback in self._subscribers

    def add(self, callback: Subscriber) -> None:
        if callback not in self._subscribers:
            self._subscribers.append(callback)

    def remove(self, callback: Subscriber) -> None:
        try:
            self._subscribers.remove(callback)
        except ValueError:
            return

    def deliver(self, record: EventRecord) -> None:
        for callback in list(self._subscribers):
            try:
                callback(record)
            except Exception:
                logger.exception("Subscriber %r failed on %s event", callback, record.type.value)


class BroadcastSink:
    """Re-emits every event under its broadcast name."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Subscriber]] = {}
        self._forwarders: list[Forwarder] = []

    def add_listener(self, name: str, callback: Subscriber) -> Callable[[], None]:
        listeners = self._listeners.setdefault(name, [])
        if callback not in listeners:
            listeners.append(callback)
        return lambda: self.remove_listener(name, callback)

    def remove_listener(self, name: str, callback: Subscriber) -> None:
        listeners = self._listeners.get(name, [])
        if callback in listeners:
            listeners.remove(callback)
        if not listeners:
            self._listeners.pop(name, None)

    def add_forwarder(self, forwarder: Forwarder) -> Callable[[], None]:
        """Receive every broadcast as ``forwarder(name, record)``."""
        if forwarder not in self._forwarders:
            self._forwarders.append(forwarder)
        return lambda: self.remove_forwarder(forwarder)

    def remove_forwarder(self, forwarder: Forwarder) -> None:
        if forwarder in self._forwarders:
            self._forwarders.remove(forwarder)

    def listener_count(self, name: str | None = None) -> int:
        if name is not None:
            return len(self._listeners.get(name, []))
        return sum(len(v) for v in self._listeners.values())

    def deliver(self, record: EventRecord) -> None:
        name = record.broadcast_name
        for callback in list(self._listeners.get(name, [])):
            try:
                callback(record)
            except Exception:
                logger.exception("Broadcast listener %r failed on %s", callback, name)
        for forwarder in list(self._forwarders):
            try:
                forwarder(name, record)
            except Exception:
                logger.exception("Broadcast forwarder %r failed on %s", forwarder, name)


class EventBus:
    """Single bus shared by everything in one application session.

    Parameters
    ----------
    sinks:
        Extra sinks fed by ``publish`` after the subscriber registry and the
        broadcast sink.
    """

    def __init__(self, sinks: list[EventSink] | None = None) -> None:
        self._registry = SubscriberRegistry()
        self._broadcasts = BroadcastSink()
        self._sinks: list[EventSink] = [self._registry, self._broadcasts, *(sinks or [])]

    @property
    def broadcasts(self) -> BroadcastSink:
        return self._broadcasts

    @property
    def subscriber_count(self) -> int:
        return len(self._registry)

    def add_sink(self, sink: EventSink) -> None:
        if sink not in self._sinks:
            self._sinks.append(sink)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register *callback*; subscribing the same callback again is a no-op.

        Returns a zero-argument function that unsubscribes it.
        """
        self._registry.add(callback)
        return lambda: self.unsubscribe(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        self._registry.remove(callback)

    def publish(
        self,
        event_type: EventType | str,
        detail: dict[str, Any] | None = None,
    ) -> EventRecord:
        """Deliver one event to every sink, synchronously.

        Raises ValueError if *event_type* is not a known ``EventType``.
        """
        record = EventRecord(type=EventType(event_type), data=dict(detail or {}))
        logger.debug("Publishing %s event", record.type.value)
        for sink in list(self._sinks):
            sink.deliver(record)
        return record
