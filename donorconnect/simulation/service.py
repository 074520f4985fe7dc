"""Simulation backends.

``SimulationControls`` talks to a ``SimulationService`` chosen once at
construction:

* ``RemoteSimulationService`` forwards every action to the AI endpoint.
* ``LocalSimulationService`` runs the simulation in-process on the event
  loop, publishing donor activity straight onto the event bus.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
import uuid
from typing import Any, Protocol, runtime_checkable

import httpx

from donorconnect.config.settings import settings
from donorconnect.events.bus import EventBus
from donorconnect.events.types import EventType
from donorconnect.rpc.client import AIDataClient
from donorconnect.rpc.errors import RPCError

from . import synthetic

logger = logging.getLogger(__name__)

# Backend activity category -> emitted event type.
_CATEGORY_EVENTS: dict[str, EventType] = {
    "DONATION": EventType.DONATION,
    "COMMUNICATION": EventType.COMMUNICATION,
    "MEETING": EventType.ENGAGEMENT,
    "PROFILE_UPDATE": EventType.PROFILE_UPDATE,
    "TASK": EventType.STATUS_CHANGE,
}


class SimulationError(RuntimeError):
    """A simulation action was refused by the backend."""


@runtime_checkable
class SimulationService(Protocol):
    async def start(self, org_id: str, options: dict[str, Any], *, resume: bool = False) -> dict[str, Any]: ...

    async def stop(self, org_id: str) -> dict[str, Any]: ...

    async def pause(self, org_id: str) -> dict[str, Any]: ...

    async def stats(self, org_id: str) -> dict[str, Any]: ...

    async def generate_donors(self, org_id: str, count: int, *, realism: float = 0.7) -> list[dict[str, Any]]: ...

    async def quick_simulate(self, org_id: str, count: int) -> list[dict[str, Any]]: ...

    async def aclose(self) -> None: ...


def _as_dict(data: Any) -> dict[str, Any]:
    return data if isinstance(data, dict) else {}


def _donor_list(data: Any) -> list[dict[str, Any]]:
    if isinstance(data, dict):
        data = data.get("donors") or []
    return list(data or [])


def normalize_stats(data: dict[str, Any]) -> dict[str, Any]:
    """Flatten a ``getSimulationStats`` payload to aggregator counter keys.

    The endpoint answers either with flat counters or with a list of
    simulations whose first entry carries ``donorCount`` and a ``stats``
    sub-record.
    """
    simulations = data.get("simulations")
    if isinstance(simulations, list):
        active = simulations[0] if simulations else {}
        inner = active.get("stats") or {}
        return {
            "activeDonors": active.get("donorCount", 0),
            "totalDonations": inner.get("donationsGenerated", 0),
            "totalActivities": inner.get("activitiesGenerated", 0),
            "status": active.get("status"),
            "startedAt": active.get("startedAt"),
        }
    return {
        key: data[key]
        for key in ("activeDonors", "totalActivities", "totalDonations", "status", "startedAt")
        if key in data
    }


class RemoteSimulationService:
    """Runs the simulation on the server through the AI endpoint."""

    def __init__(self, client: AIDataClient) -> None:
        self._client = client

    async def start(self, org_id: str, options: dict[str, Any], *, resume: bool = False) -> dict[str, Any]:
        params = {"orgId": org_id, **options}
        if resume:
            params["resume"] = True
        return _as_dict(await self._client.request("startSimulation", params, use_post=True))

    async def stop(self, org_id: str) -> dict[str, Any]:
        return _as_dict(await self._client.request("stopSimulation", {"orgId": org_id}, use_post=True))

    async def pause(self, org_id: str) -> dict[str, Any]:
        return _as_dict(await self._client.request("pauseSimulation", {"orgId": org_id}, use_post=True))

    async def stats(self, org_id: str) -> dict[str, Any]:
        data = await self._client.request("getSimulationStats", {"orgId": org_id})
        return normalize_stats(_as_dict(data))

    async def generate_donors(self, org_id: str, count: int, *, realism: float = 0.7) -> list[dict[str, Any]]:
        params = {"orgId": org_id, "count": count, "realism": realism}
        try:
            data = await self._client.request("generateFakeDonorData", params, use_post=True)
        except RPCError as exc:
            logger.info("generateFakeDonorData unavailable (%s), trying generateDonorData", exc)
            data = await self._client.request("generateDonorData", params, use_post=True)
        return _donor_list(data)

    async def quick_simulate(self, org_id: str, count: int) -> list[dict[str, Any]]:
        data = await self._client.request(
            "quickSimulate", {"orgId": org_id, "count": count}, use_post=True
        )
        if isinstance(data, dict):
            data = data.get("activities") or []
        return list(data or [])

    async def aclose(self) -> None:
        return None


class LocalSimulationService:
    """In-process simulation engine.

    Loads donors (from the API when a client is given, otherwise
    synthetically), then every ``cycle_seconds / speed`` seconds emits one
    random activity from the enabled categories onto the bus.

    Parameters
    ----------
    bus:
        Event bus receiving the simulated activity.
    client:
        Optional RPC client used to load real donors.
    cycle_seconds:
        Base cycle length at speed 1. Falls back to ``settings.LOCAL_CYCLE_SECONDS``.
    rng:
        Random source (seed it for reproducible runs).
    """

    def __init__(
        self,
        bus: EventBus,
        client: AIDataClient | None = None,
        *,
        cycle_seconds: float | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._bus = bus
        self._client = client
        self._cycle_seconds = cycle_seconds if cycle_seconds is not None else settings.LOCAL_CYCLE_SECONDS
        self._rng = rng or random.Random()
        self._task: asyncio.Task[None] | None = None
        self._interval = self._cycle_seconds
        self._categories: list[EventType] = list(_CATEGORY_EVENTS.values())
        self.active_donors: list[dict[str, Any]] = []
        self.simulation_id: str | None = None
        self.is_running = False
        self.is_paused = False
        self.started_at: float | None = None
        self.donations_generated = 0
        self.donation_total = 0.0
        self.activities_generated = 0

    async def start(self, org_id: str, options: dict[str, Any], *, resume: bool = False) -> dict[str, Any]:
        if resume and self.is_paused:
            self.is_paused = False
            self.is_running = True
            self._schedule()
            return {"simulationId": self.simulation_id, "donorCount": len(self.active_donors), "status": "running"}
        if self.is_running:
            raise SimulationError("Simulation already running")

        self._configure(options)
        donor_limit = int(options.get("donorLimit") or options.get("donorCount") or 50)
        self.active_donors = await self._load_donors(org_id, donor_limit, float(options.get("realism") or 0.7))
        self.simulation_id = f"sim_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"
        self.started_at = time.time()
        self.donations_generated = 0
        self.donation_total = 0.0
        self.activities_generated = 0
        self.is_running = True
        self.is_paused = False
        self._schedule()
        logger.info(
            "Local simulation %s started for %s with %d donors",
            self.simulation_id, org_id, len(self.active_donors),
        )
        return {"simulationId": self.simulation_id, "donorCount": len(self.active_donors), "status": "running"}

    async def stop(self, org_id: str) -> dict[str, Any]:
        await self._cancel()
        self.is_running = False
        self.is_paused = False
        self.active_donors = []
        self.simulation_id = None
        self.started_at = None
        self.donations_generated = 0
        self.donation_total = 0.0
        self.activities_generated = 0
        return {"status": "stopped"}

    async def pause(self, org_id: str) -> dict[str, Any]:
        if not self.is_running:
            raise SimulationError("Simulation is not running")
        await self._cancel()
        self.is_running = False
        self.is_paused = True
        return {"simulationId": self.simulation_id, "status": "paused"}

    async def stats(self, org_id: str) -> dict[str, Any]:
        return {
            "activeDonors": len(self.active_donors),
            "totalActivities": self.activities_generated,
            "totalDonations": self.donation_total,
            "status": "running" if self.is_running else "paused" if self.is_paused else "stopped",
            "startedAt": self.started_at,
        }

    async def generate_donors(self, org_id: str, count: int, *, realism: float = 0.7) -> list[dict[str, Any]]:
        return synthetic.generate_donors(count, realism, self._rng)

    async def quick_simulate(self, org_id: str, count: int) -> list[dict[str, Any]]:
        donors = self.active_donors or synthetic.generate_donors(max(1, min(count, 10)), rng=self._rng)
        activities = []
        for _ in range(count):
            kind = self._rng.choice(self._categories)
            payload = synthetic.generate_activity(kind.value, self._rng.choice(donors), self._rng)
            activities.append({"type": kind.value, **payload})
        return activities

    async def run_cycle(self) -> None:
        """Emit one simulated activity; no-op unless running with donors."""
        if not self.is_running or self.is_paused or not self.active_donors:
            return
        kind = self._rng.choice(self._categories)
        donor = self._rng.choice(self.active_donors)
        payload = synthetic.generate_activity(kind.value, donor, self._rng)
        if kind is EventType.DONATION:
            self.donations_generated += 1
            self.donation_total += payload["amount"]
        if kind is not EventType.STATUS_CHANGE:
            self.activities_generated += 1
        self._bus.publish(kind, payload)

    async def aclose(self) -> None:
        await self._cancel()

    # -- internals -----------------------------------------------------------

    def _configure(self, options: dict[str, Any]) -> None:
        speed = max(1, int(options.get("speed") or 5))
        self._interval = self._cycle_seconds / speed
        toggles = options.get("activityTypes") or []
        enabled = [
            _CATEGORY_EVENTS[t["type"]]
            for t in toggles
            if isinstance(t, dict) and t.get("enabled") and t.get("type") in _CATEGORY_EVENTS
        ]
        self._categories = enabled or list(_CATEGORY_EVENTS.values())

    async def _load_donors(self, org_id: str, limit: int, realism: float) -> list[dict[str, Any]]:
        if self._client is not None:
            try:
                donors = _donor_list(await self._client.get_donors(limit, orgId=org_id))
                if donors:
                    return donors
            except (RPCError, httpx.HTTPError) as exc:
                logger.info("Could not load donors for simulation (%s); generating", exc)
        return synthetic.generate_donors(limit, realism, self._rng)

    def _schedule(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._loop())

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.run_cycle()
            except Exception:
                logger.exception("Simulation cycle error")

    async def _cancel(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
