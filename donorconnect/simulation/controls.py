"""Imperative simulation actions.

Every action follows the same shape: call the simulation service; on
success update the aggregator and publish the matching event; on failure
record the error on the aggregator, leave run/pause state untouched and
re-raise so the caller can present it.
"""

from __future__ import annotations

import logging
from typing import Any

from donorconnect.config.simulation_settings import SimulationSettings
from donorconnect.events.bus import EventBus
from donorconnect.events.types import EventType
from donorconnect.org.context import resolve_org_id

from .service import SimulationService
from .status import StatusAggregator

logger = logging.getLogger(__name__)


class SimulationControls:
    """Control surface over one ``SimulationService``.

    Parameters
    ----------
    service:
        Backend chosen at bootstrap (remote or local).
    aggregator:
        Session status owner.
    bus:
        Session event bus.
    org_id:
        Default organisation; resolved through ``resolve_org_id`` when omitted.
    """

    def __init__(
        self,
        service: SimulationService,
        aggregator: StatusAggregator,
        bus: EventBus,
        *,
        org_id: str | None = None,
    ) -> None:
        self._service = service
        self._aggregator = aggregator
        self._bus = bus
        self._org_id = org_id
        self._last_options: dict[str, Any] = {}

    @property
    def service(self) -> SimulationService:
        return self._service

    def _org(self, org_id: str | None) -> str:
        return resolve_org_id(org_id or self._org_id)

    def _fail(self, action: str, exc: Exception) -> None:
        logger.error("Failed to %s simulation: %s", action, exc)
        self._aggregator.record_error(str(exc))

    async def start(
        self,
        org_id: str | None = None,
        options: SimulationSettings | dict[str, Any] | None = None,
        *,
        resume: bool = False,
    ) -> dict[str, Any]:
        """Start (or resume) the simulation; publishes ``simulation_started``."""
        org = self._org(org_id)
        if isinstance(options, SimulationSettings):
            params = options.to_backend(org)
        elif options is not None:
            params = dict(options)
        else:
            params = dict(self._last_options)

        try:
            data = await self._service.start(org, params, resume=resume)
        except Exception as exc:
            self._fail("resume" if resume else "start", exc)
            raise

        self._last_options = params
        donor_count = data.get("donorCount")
        self._aggregator.mark_started(int(donor_count) if donor_count is not None else None)
        self._bus.publish(EventType.SIMULATION_STARTED, {
            "orgId": org,
            "simulationId": data.get("simulationId"),
            "donorCount": donor_count,
            "resumed": resume,
            "options": params,
        })
        return data

    async def resume(self, org_id: str | None = None) -> dict[str, Any]:
        return await self.start(org_id, None, resume=True)

    async def stop(self, org_id: str | None = None) -> dict[str, Any]:
        """Stop the simulation and zero counters; publishes ``simulation_stopped``."""
        org = self._org(org_id)
        try:
            data = await self._service.stop(org)
        except Exception as exc:
            self._fail("stop", exc)
            raise
        self._aggregator.mark_stopped()
        self._bus.publish(EventType.SIMULATION_STOPPED, {"orgId": org})
        return data

    async def pause(self, org_id: str | None = None) -> dict[str, Any]:
        """Pause a running simulation; publishes ``simulation_paused`` only if it was running."""
        org = self._org(org_id)
        try:
            data = await self._service.pause(org)
        except Exception as exc:
            self._fail("pause", exc)
            raise
        self._aggregator.clear_error()
        if self._aggregator.mark_paused():
            self._bus.publish(EventType.SIMULATION_PAUSED, {"orgId": org})
        else:
            logger.debug("Not publishing pause for %s: simulation was not running", org)
        return data

    async def get_stats(self, org_id: str | None = None) -> dict[str, Any]:
        """Fetch stats and merge them into the counters (run state untouched)."""
        org = self._org(org_id)
        try:
            stats = await self._service.stats(org)
        except Exception as exc:
            self._fail("fetch stats for", exc)
            raise
        self._aggregator.merge_stats(stats)
        return stats

    async def generate_test_data(
        self,
        count: int = 5,
        org_id: str | None = None,
        auto_save: bool = False,
        *,
        realism: float = 0.7,
    ) -> list[dict[str, Any]]:
        """Request synthetic donors; publishes ``data_generated``.

        Persisting them (when *auto_save* is set) is the caller's job; see
        ``GeneratedDonorBuffer.persist``.
        """
        if count < 1:
            raise ValueError("count must be >= 1")
        org = self._org(org_id)
        try:
            donors = await self._service.generate_donors(org, count, realism=realism)
        except Exception as exc:
            self._fail("generate data for", exc)
            raise
        self._aggregator.clear_error()
        self._bus.publish(EventType.DATA_GENERATED, {
            "orgId": org,
            "donors": donors,
            "count": len(donors),
            "autoSave": auto_save,
        })
        return donors

    async def quick_simulate(self, org_id: str | None = None, count: int = 5) -> list[dict[str, Any]]:
        """Run a one-shot burst of activity, publishing each item as its event."""
        org = self._org(org_id)
        try:
            activities = await self._service.quick_simulate(org, count)
        except Exception as exc:
            self._fail("quick-run", exc)
            raise
        self._aggregator.clear_error()
        for activity in activities:
            kind = activity.get("type")
            try:
                event_type = EventType(kind)
            except ValueError:
                logger.warning("Skipping quick-simulate activity of unknown type %r", kind)
                continue
            detail = {k: v for k, v in activity.items() if k != "type"}
            self._bus.publish(event_type, detail)
        return activities
