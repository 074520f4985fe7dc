"""Simulation status record and the aggregator that owns it.

The aggregator holds the one ``SimulationStatus`` of an application
session.  It is updated from three directions:

* bus events (donations, communications... adjust counters additively),
* the periodic activity poll (``apply_activity`` / ``apply_activity_fallback``),
* control results (``mark_started`` / ``mark_paused`` / ``mark_stopped``).

Run state is one of Stopped, Running, Paused; ``is_running`` and
``is_paused`` are never both true.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from donorconnect.events.types import ACTIVITY_EVENTS, EventRecord, EventType

logger = logging.getLogger(__name__)

StatusListener = Callable[["SimulationStatus"], Any]

# Upper bound on ``recent_activity`` entries kept from bus events.
RECENT_ACTIVITY_LIMIT = 20


@dataclass
class SimulationCounters:
    is_running: bool = False
    is_paused: bool = False
    active_donors: int = 0
    total_activities: int = 0
    total_donations: float = 0.0

    @property
    def state(self) -> str:
        if self.is_running:
            return "running"
        if self.is_paused:
            return "paused"
        return "stopped"

    def to_dict(self) -> dict[str, Any]:
        return {
            "isRunning": self.is_running,
            "isPaused": self.is_paused,
            "activeDonors": self.active_donors,
            "totalActivities": self.total_activities,
            "totalDonations": self.total_donations,
        }


@dataclass
class BondingState:
    active_sessions: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"activeSessions": self.active_sessions}


@dataclass
class SimulationStatus:
    initialized: bool = False
    simulation: SimulationCounters = field(default_factory=SimulationCounters)
    bonding: BondingState = field(default_factory=BondingState)
    last_update: datetime | None = None
    error: str | None = None
    data_summary: dict[str, Any] | None = None
    recent_activity: list[dict[str, Any]] = field(default_factory=list)
    activity_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "initialized": self.initialized,
            "simulation": self.simulation.to_dict(),
            "bonding": self.bonding.to_dict(),
            "lastUpdate": self.last_update.isoformat() if self.last_update else None,
            "error": self.error,
            "dataSummary": self.data_summary,
            "recentActivity": list(self.recent_activity),
            "activityError": self.activity_error,
        }


def _amount(data: dict[str, Any]) -> float:
    try:
        return float(data.get("amount") or 0)
    except (TypeError, ValueError):
        return 0.0


class StatusAggregator:
    """Owns the session's ``SimulationStatus`` and its transition rules."""

    def __init__(self) -> None:
        self._status = SimulationStatus()
        self._listeners: list[StatusListener] = []
        self._activity_version = 0

    @property
    def status(self) -> SimulationStatus:
        return self._status

    @property
    def activity_version(self) -> int:
        """Bumped each time a bus event prepends to ``recent_activity``."""
        return self._activity_version

    # -- change notification -------------------------------------------------

    def add_listener(self, listener: StatusListener) -> Callable[[], None]:
        if listener not in self._listeners:
            self._listeners.append(listener)
        return lambda: self.remove_listener(listener)

    def remove_listener(self, listener: StatusListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _changed(self) -> None:
        self._status.last_update = datetime.now(timezone.utc)
        for listener in list(self._listeners):
            try:
                listener(self._status)
            except Exception:
                logger.exception("Status listener %r failed", listener)

    # -- bus events ----------------------------------------------------------

    def handle_event(self, record: EventRecord) -> None:
        """Bus subscriber: adjust counters from one event."""
        sim = self._status.simulation
        if record.type in ACTIVITY_EVENTS:
            sim.total_activities += 1
            if record.type is EventType.DONATION:
                sim.total_donations += _amount(record.data)
            self._status.recent_activity.insert(0, {
                "id": record.data.get("id"),
                "type": record.type.value,
                **record.data,
                "timestamp": record.timestamp.isoformat(),
            })
            del self._status.recent_activity[RECENT_ACTIVITY_LIMIT:]
            self._activity_version += 1
        elif record.type is EventType.BONDING_STARTED:
            self._status.bonding.active_sessions += 1
        elif record.type is EventType.BONDING_ENDED:
            self._status.bonding.active_sessions = max(0, self._status.bonding.active_sessions - 1)
        else:
            return
        self._changed()

    # -- run state -----------------------------------------------------------

    def mark_started(self, active_donors: int | None = None) -> None:
        """Any state -> Running."""
        sim = self._status.simulation
        sim.is_running = True
        sim.is_paused = False
        if active_donors is not None:
            sim.active_donors = active_donors
        self._status.error = None
        self._changed()

    def mark_paused(self) -> bool:
        """Running -> Paused.  Ignored (returns False) from any other state."""
        sim = self._status.simulation
        if not sim.is_running:
            logger.debug("Pause ignored: simulation is %s", sim.state)
            return False
        sim.is_running = False
        sim.is_paused = True
        self._status.error = None
        self._changed()
        return True

    def mark_stopped(self) -> None:
        """Any state -> Stopped, zeroing every counter."""
        self._status.simulation = SimulationCounters()
        self._status.error = None
        self._changed()

    def merge_stats(self, stats: dict[str, Any]) -> None:
        """Merge remote stats into the counters without touching run state."""
        sim = self._status.simulation
        if "activeDonors" in stats:
            sim.active_donors = int(stats["activeDonors"])
        if "totalActivities" in stats:
            sim.total_activities = int(stats["totalActivities"])
        if "totalDonations" in stats:
            sim.total_donations = float(stats["totalDonations"])
        self._status.error = None
        self._changed()

    # -- initialisation & errors ---------------------------------------------

    def mark_initialized(self, data_summary: dict[str, Any] | None) -> None:
        self._status.initialized = True
        self._status.data_summary = data_summary
        self._status.error = None
        self._changed()

    def mark_initialization_failed(self, message: str) -> None:
        self._status.initialized = False
        self._status.error = message
        self._changed()

    def record_error(self, message: str) -> None:
        self._status.error = message
        self._changed()

    def clear_error(self) -> None:
        """Drop the last control error after a successful operation."""
        if self._status.error is None:
            return
        self._status.error = None
        self._changed()

    # -- activity feed -------------------------------------------------------

    def apply_activity(
        self,
        items: list[dict[str, Any]],
        *,
        since_version: int | None = None,
    ) -> bool:
        """Replace ``recent_activity`` with a polled snapshot.

        When *since_version* is given and a bus event has touched the feed
        since then, the snapshot is stale and is dropped.  Returns whether
        the snapshot was applied.
        """
        if since_version is not None and since_version != self._activity_version:
            logger.debug(
                "Dropping stale activity snapshot (version %s, now %s)",
                since_version, self._activity_version,
            )
            return False
        self._status.recent_activity = list(items)
        self._status.activity_error = None
        self._changed()
        return True

    def apply_activity_fallback(self, items: list[dict[str, Any]], error: str) -> None:
        self._status.recent_activity = list(items)
        self._status.activity_error = error
        self._changed()
