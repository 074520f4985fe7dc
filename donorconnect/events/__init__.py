"""In-process event bus for simulation events."""

from .bus import BroadcastSink, EventBus, EventSink, SubscriberRegistry
from .types import ACTIVITY_EVENTS, BROADCAST_NAMES, EventRecord, EventType, broadcast_name

__all__ = [
    "ACTIVITY_EVENTS",
    "BROADCAST_NAMES",
    "BroadcastSink",
    "EventBus",
    "EventRecord",
    "EventSink",
    "EventType",
    "SubscriberRegistry",
    "broadcast_name",
]
