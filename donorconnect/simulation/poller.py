"""Periodic refresh of the organisation activity feed.

The poll never raises: any failure is logged, recorded as
``activity_error`` and masked with ``FALLBACK_ACTIVITY`` so consumers
always have something to render.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from donorconnect.config.settings import settings
from donorconnect.rpc.client import AIDataClient

from .status import StatusAggregator

logger = logging.getLogger(__name__)

ActivityCallback = Callable[[list[dict[str, Any]]], Any]

FALLBACK_ACTIVITY: list[dict[str, Any]] = [
    {"id": "sample-1", "donor": "John Smith", "action": "Made a donation", "amount": 10000, "sample": True},
    {"id": "sample-2", "donor": "Sarah Johnson", "action": "Meeting scheduled", "amount": None, "sample": True},
    {"id": "sample-3", "donor": "Robert Chen", "action": "Thank you note sent", "amount": None, "sample": True},
    {"id": "sample-4", "donor": "Maria Garcia", "action": "Made a donation", "amount": 500, "sample": True},
    {"id": "sample-5", "donor": "David Wilson", "action": "Updated contact info", "amount": None, "sample": True},
]


def fallback_activity() -> list[dict[str, Any]]:
    return [dict(item) for item in FALLBACK_ACTIVITY]


def _activity_items(data: Any) -> list[dict[str, Any]]:
    if isinstance(data, dict):
        data = data.get("activities") or data.get("items") or []
    return [item for item in (data or []) if isinstance(item, dict)]


class ActivityPoller:
    """Polls ``organizationActivity`` every *interval* seconds while initialised.

    Parameters
    ----------
    client:
        RPC client used for the poll.
    aggregator:
        Receives the snapshot (or the fallback list).
    interval:
        Seconds between polls. Falls back to ``settings.ACTIVITY_POLL_INTERVAL``.
    limit:
        Number of activity items requested per poll.
    """

    def __init__(
        self,
        client: AIDataClient,
        aggregator: StatusAggregator,
        *,
        interval: float | None = None,
        limit: int | None = None,
    ) -> None:
        self._client = client
        self._aggregator = aggregator
        self.interval = interval if interval is not None else settings.ACTIVITY_POLL_INTERVAL
        self.limit = limit if limit is not None else settings.ACTIVITY_LIMIT
        self._task: asyncio.Task[None] | None = None
        self._callbacks: list[ActivityCallback] = []

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def on_activity(self, callback: ActivityCallback) -> None:
        """Call *callback* with every successfully polled (non-fallback) snapshot."""
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def start(self) -> None:
        """Start the background loop; a second call while running is a no-op."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info("Activity poller started (every %ss)", self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Activity poller stopped")

    async def refresh_once(self) -> bool:
        """Run one poll.  Returns True when live data was applied."""
        version = self._aggregator.activity_version
        try:
            data = await self._client.organization_activity(limit=self.limit)
        except Exception as exc:
            logger.warning("Activity refresh failed, using fallback list: %s", exc)
            self._aggregator.apply_activity_fallback(fallback_activity(), str(exc))
            return False

        items = _activity_items(data)
        if not self._aggregator.apply_activity(items, since_version=version):
            return False
        for callback in list(self._callbacks):
            try:
                callback(items)
            except Exception:
                logger.exception("Activity callback %r failed", callback)
        return True

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if not self._aggregator.status.initialized:
                continue
            await self.refresh_once()
