"""Event types flowing through the simulation event bus."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


class EventType(str, enum.Enum):
    DONATION = "donation"
    COMMUNICATION = "communication"
    PROFILE_UPDATE = "profile_update"
    ENGAGEMENT = "engagement"
    STATUS_CHANGE = "status_change"
    SIMULATION_STARTED = "simulation_started"
    SIMULATION_PAUSED = "simulation_paused"
    SIMULATION_STOPPED = "simulation_stopped"
    DATA_GENERATED = "data_generated"
    BONDING_STARTED = "bonding_started"
    BONDING_ENDED = "bonding_ended"


# Name under which each event type is re-emitted on the broadcast channel.
BROADCAST_NAMES: dict[EventType, str] = {
    EventType.DONATION: "donorDonation",
    EventType.COMMUNICATION: "donorCommunication",
    EventType.PROFILE_UPDATE: "donorProfileUpdate",
    EventType.ENGAGEMENT: "donorEngagement",
    EventType.STATUS_CHANGE: "donorStatusChange",
    EventType.SIMULATION_STARTED: "simulationStarted",
    EventType.SIMULATION_PAUSED: "simulationPaused",
    EventType.SIMULATION_STOPPED: "simulationStopped",
    EventType.DATA_GENERATED: "donorDataGenerated",
    EventType.BONDING_STARTED: "bondingStarted",
    EventType.BONDING_ENDED: "bondingEnded",
}

# Donor activity events; each one counts toward ``totalActivities``.
ACTIVITY_EVENTS = frozenset({
    EventType.DONATION,
    EventType.COMMUNICATION,
    EventType.PROFILE_UPDATE,
    EventType.ENGAGEMENT,
})


def broadcast_name(event_type: EventType | str) -> str:
    """Return the broadcast name for *event_type*.

    Raises ValueError for an unknown event type string.
    """
    return BROADCAST_NAMES[EventType(event_type)]


@dataclass(frozen=True)
class EventRecord:
    """One published event; lives only for the duration of dispatch."""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def broadcast_name(self) -> str:
        return BROADCAST_NAMES[self.type]

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }
