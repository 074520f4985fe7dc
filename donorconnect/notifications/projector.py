"""Derives notifications from status transitions and polled activity.

Rules:

* first ``initialized`` -> one "AI Initialized" (important) and one welcome
  notification (normal), once per session;
* ``is_running`` false -> true -> "Simulation Started", once per session
  unless ``renotify_on_restart`` is set;
* ``bonding.active_sessions`` above its high-water mark -> one notification
  per increase;
* a polled activity item whose id has not been seen -> one notification,
  important when its amount exceeds ``large_gift_threshold``.  The first
  snapshot only primes the seen set.

The list is newest-first and capped at ``max_items``.  Each notification
expires after its importance-dependent TTL unless it was marked read.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any, Callable

from donorconnect.config.settings import settings

from .models import Importance, Notification, NotificationType

if TYPE_CHECKING:
    from donorconnect.simulation.status import SimulationStatus

logger = logging.getLogger(__name__)

NotificationListener = Callable[[Notification], Any]

_SEEN_LIMIT = 500


def _amount(item: dict[str, Any]) -> float:
    raw = item.get("amount")
    if isinstance(raw, str):
        raw = raw.replace("$", "").replace(",", "")
    try:
        return float(raw or 0)
    except (TypeError, ValueError):
        return 0.0


class NotificationProjector:
    """Bounded, self-expiring notification list.

    Parameters
    ----------
    max_items:
        Cap on retained notifications (oldest evicted first).
    normal_ttl / important_ttl:
        Seconds before an unread notification is removed.
    large_gift_threshold:
        Donation amount above which an activity notification is important.
    renotify_on_restart:
        Re-fire "Simulation Started" on every stopped/paused -> running edge.
    clock:
        Monotonic clock used for ``expires_at``.
    """

    def __init__(
        self,
        *,
        max_items: int | None = None,
        normal_ttl: float | None = None,
        important_ttl: float | None = None,
        large_gift_threshold: float | None = None,
        renotify_on_restart: bool | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_items = max_items or settings.NOTIFICATION_MAX
        self.normal_ttl = normal_ttl if normal_ttl is not None else settings.NOTIFICATION_NORMAL_TTL
        self.important_ttl = (
            important_ttl if important_ttl is not None else settings.NOTIFICATION_IMPORTANT_TTL
        )
        self.large_gift_threshold = (
            large_gift_threshold if large_gift_threshold is not None else settings.LARGE_GIFT_THRESHOLD
        )
        self.renotify_on_restart = (
            renotify_on_restart if renotify_on_restart is not None else settings.RENOTIFY_ON_RESTART
        )
        self._clock = clock
        self._items: list[Notification] = []
        self._handles: dict[str, asyncio.TimerHandle] = {}
        self._listeners: list[NotificationListener] = []
        self._paused = False

        self._initialized_notified = False
        self._started_notified = False
        self._last_running = False
        self._bonding_high_water = 0
        self._activity_primed = False
        self._seen_activity: dict[Any, None] = {}

    # -- read access ---------------------------------------------------------

    @property
    def notifications(self) -> list[Notification]:
        return list(self._items)

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self._items if not n.read)

    @property
    def paused(self) -> bool:
        return self._paused

    def get(self, notification_id: str) -> Notification | None:
        for n in self._items:
            if n.id == notification_id:
                return n
        return None

    def add_listener(self, listener: NotificationListener) -> Callable[[], None]:
        """Call *listener* with every newly added notification."""
        if listener not in self._listeners:
            self._listeners.append(listener)
        return lambda: self.remove_listener(listener)

    def remove_listener(self, listener: NotificationListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # -- derivation ----------------------------------------------------------

    def on_status_change(self, status: "SimulationStatus") -> None:
        if self._paused:
            return

        if status.initialized and not self._initialized_notified:
            self._initialized_notified = True
            self.add(
                NotificationType.SYSTEM,
                "AI Initialized",
                "AI system successfully connected and ready",
                Importance.IMPORTANT,
                {"kind": "ai_initialized", "summary": status.data_summary or {}},
            )
            self.add(
                NotificationType.WELCOME,
                "AI System Ready",
                "DonorConnect AI is now analyzing your data",
                Importance.NORMAL,
            )

        running = status.simulation.is_running
        if running and not self._last_running:
            if not self._started_notified or self.renotify_on_restart:
                self._started_notified = True
                self.add(
                    NotificationType.SIMULATION,
                    "Simulation Started",
                    "AI simulation is now running",
                    Importance.NORMAL,
                    {"kind": "simulation_started", "progress": 0},
                )
        self._last_running = running

        sessions = status.bonding.active_sessions
        if sessions > self._bonding_high_water:
            self._bonding_high_water = sessions
            self.add(
                NotificationType.BONDING,
                "Bonding Session Active",
                f"{sessions} donor bonding sessions in progress",
                Importance.NORMAL,
                {"status": "active", "count": sessions},
            )

    def on_activity(self, items: list[dict[str, Any]]) -> None:
        """Notify once for each activity item not seen before.

        *items* are newest first; the first call only records their ids.
        """
        if self._paused:
            return
        if not self._activity_primed:
            self._activity_primed = True
            for item in items:
                self._remember(item.get("id"))
            return

        for item in reversed(items):
            source_id = item.get("id")
            if source_id is None or item.get("sample"):
                continue
            if source_id in self._seen_activity or self._represented(source_id):
                continue
            self._remember(source_id)
            self.add(*self._describe(item), data={**item, "sourceId": source_id})

    def _describe(self, item: dict[str, Any]) -> tuple[NotificationType, str, str, Importance]:
        donor = item.get("donorName") or item.get("donor") or "A donor"
        amount = _amount(item)
        is_donation = item.get("type") in ("donation", "DONATION") or amount > 0
        importance = Importance.IMPORTANT if amount > self.large_gift_threshold else Importance.NORMAL
        if is_donation:
            return (
                NotificationType.DONATION,
                "New Donation Received",
                f"{donor} donated ${amount:,.2f}",
                importance,
            )
        action = item.get("action") or item.get("description") or item.get("type") or "activity"
        return NotificationType.ACTIVITY, "New Donor Activity", f"{donor}: {action}", importance

    def _represented(self, source_id: Any) -> bool:
        return any(n.source_id == source_id for n in self._items)

    def _remember(self, source_id: Any) -> None:
        if source_id is None:
            return
        self._seen_activity[source_id] = None
        while len(self._seen_activity) > _SEEN_LIMIT:
            del self._seen_activity[next(iter(self._seen_activity))]

    # -- list management -----------------------------------------------------

    def add(
        self,
        type: NotificationType,
        title: str,
        message: str,
        importance: Importance = Importance.NORMAL,
        data: dict[str, Any] | None = None,
    ) -> Notification:
        ttl = self.important_ttl if importance is Importance.IMPORTANT else self.normal_ttl
        notification = Notification(
            type=type,
            title=title,
            message=message,
            importance=importance,
            data=dict(data or {}),
            expires_at=self._clock() + ttl,
        )
        self._items.insert(0, notification)
        for evicted in self._items[self.max_items:]:
            self._cancel_expiry(evicted.id)
        del self._items[self.max_items:]
        self._schedule_expiry(notification, ttl)

        for listener in list(self._listeners):
            try:
                listener(notification)
            except Exception:
                logger.exception("Notification listener %r failed", listener)
        return notification

    def mark_read(self, notification_id: str) -> bool:
        n = self.get(notification_id)
        if n is None:
            return False
        n.read = True
        self._cancel_expiry(notification_id)
        return True

    def remove(self, notification_id: str) -> bool:
        n = self.get(notification_id)
        if n is None:
            return False
        self._items.remove(n)
        self._cancel_expiry(notification_id)
        return True

    def clear(self) -> None:
        for n in self._items:
            self._cancel_expiry(n.id)
        self._items.clear()

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        self._paused = False

    def expire_due(self, now: float | None = None) -> int:
        """Remove unread notifications whose TTL has elapsed; returns the count."""
        now = self._clock() if now is None else now
        due = [
            n for n in self._items
            if not n.read and n.expires_at is not None and n.expires_at <= now
        ]
        for n in due:
            self.remove(n.id)
        return len(due)

    def close(self) -> None:
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()

    # -- expiry --------------------------------------------------------------

    def _schedule_expiry(self, notification: Notification, ttl: float) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: expiry happens through expire_due().
            return
        self._handles[notification.id] = loop.call_later(ttl, self._expire, notification.id)

    def _cancel_expiry(self, notification_id: str) -> None:
        handle = self._handles.pop(notification_id, None)
        if handle is not None:
            handle.cancel()

    def _expire(self, notification_id: str) -> None:
        self._handles.pop(notification_id, None)
        n = self.get(notification_id)
        if n is not None and not n.read:
            self._items.remove(n)
            logger.debug("Notification %s expired", notification_id)
