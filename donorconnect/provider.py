"""Application-session bootstrap.

``AIProvider`` is built once per session and owns the single instance of
every stateful piece (client, bus, aggregator, projector, poller...).
Consumers receive it (or its parts) explicitly instead of reaching for
module globals.

Example:
    async with AIProvider.from_settings() as ai:
        await ai.initialize()
        await ai.controls.start(options=ai.simulation_settings)
        print(ai.status.to_dict())
"""

from __future__ import annotations

import logging
from typing import Any

from donorconnect.config.settings import Settings, settings as default_settings
from donorconnect.config.simulation_settings import (
    SimulationSettings,
    load_simulation_settings,
    save_simulation_settings,
)
from donorconnect.events.bus import EventBus
from donorconnect.notifications.projector import NotificationProjector
from donorconnect.org.context import resolve_org_id
from donorconnect.rpc.client import AIDataClient
from donorconnect.simulation.chat import DonorChat
from donorconnect.simulation.controls import SimulationControls
from donorconnect.simulation.generated import GeneratedDonorBuffer
from donorconnect.simulation.poller import ActivityPoller
from donorconnect.simulation.service import (
    LocalSimulationService,
    RemoteSimulationService,
    SimulationService,
)
from donorconnect.simulation.status import SimulationStatus, StatusAggregator

logger = logging.getLogger(__name__)


class AIProvider:
    """Wires the simulation state synchronizer for one session.

    Parameters
    ----------
    client:
        RPC client shared by every component.
    service:
        Simulation backend. Defaults to ``RemoteSimulationService(client)``.
    bus / aggregator / projector:
        Optional pre-built instances (tests inject their own).
    org_id:
        Organisation for this session; resolved when omitted.
    poll_interval:
        Seconds between activity polls.
    """

    def __init__(
        self,
        client: AIDataClient,
        *,
        service: SimulationService | None = None,
        bus: EventBus | None = None,
        aggregator: StatusAggregator | None = None,
        projector: NotificationProjector | None = None,
        org_id: str | None = None,
        poll_interval: float | None = None,
        simulation_settings: SimulationSettings | None = None,
        config: Settings | None = None,
    ) -> None:
        self._config = config or default_settings
        self.org_id = resolve_org_id(org_id)
        self.client = client
        self.bus = bus or EventBus()
        self.aggregator = aggregator or StatusAggregator()
        self.projector = projector or NotificationProjector(
            max_items=self._config.NOTIFICATION_MAX,
            normal_ttl=self._config.NOTIFICATION_NORMAL_TTL,
            important_ttl=self._config.NOTIFICATION_IMPORTANT_TTL,
            large_gift_threshold=self._config.LARGE_GIFT_THRESHOLD,
            renotify_on_restart=self._config.RENOTIFY_ON_RESTART,
        )
        self.service = service or RemoteSimulationService(client)
        self.controls = SimulationControls(self.service, self.aggregator, self.bus, org_id=self.org_id)
        self.poller = ActivityPoller(
            client,
            self.aggregator,
            interval=poll_interval if poll_interval is not None else self._config.ACTIVITY_POLL_INTERVAL,
            limit=self._config.ACTIVITY_LIMIT,
        )
        self.generated = GeneratedDonorBuffer(self.bus, client, batch_size=self._config.BULK_BATCH_SIZE)
        self.chat = DonorChat(client, self.bus)
        self.simulation_settings = simulation_settings or SimulationSettings()

        self._unsubscribe = self.bus.subscribe(self.aggregator.handle_event)
        self.aggregator.add_listener(self.projector.on_status_change)
        self.poller.on_activity(self.projector.on_activity)
        self._closed = False

    @classmethod
    def from_settings(cls, config: Settings | None = None, *, org_id: str | None = None) -> "AIProvider":
        """Build a provider from process settings, restoring the settings blob."""
        config = config or default_settings
        client = AIDataClient(config.API_BASE_URL, config.AI_ENDPOINT_PATH, org_id=org_id)
        bus = EventBus()
        service: SimulationService
        if config.SIMULATION_BACKEND == "local":
            service = LocalSimulationService(bus, client, cycle_seconds=config.LOCAL_CYCLE_SECONDS)
        else:
            service = RemoteSimulationService(client)
        return cls(
            client,
            service=service,
            bus=bus,
            org_id=org_id,
            simulation_settings=load_simulation_settings(config.SIMULATION_SETTINGS_FILE),
            config=config,
        )

    @property
    def status(self) -> SimulationStatus:
        return self.aggregator.status

    async def initialize(self) -> SimulationStatus:
        """Call ``aiInitialize`` and start the activity poller.

        Safe to call repeatedly: a later call refreshes ``data_summary``,
        the poller is started at most once and one-shot notifications never
        repeat.  Failure is recorded on the status (``initialized=False``,
        ``error`` set) and not retried.
        """
        try:
            data = await self.client.ai_initialize()
        except Exception as exc:
            logger.error("AI system initialization failed: %s", exc)
            self.aggregator.mark_initialization_failed(str(exc))
            return self.status

        summary: dict[str, Any] | None = None
        if isinstance(data, dict):
            summary = data.get("summary") or data.get("dataSummary") or data
        self.aggregator.mark_initialized(summary)
        self.poller.start()
        await self.poller.refresh_once()
        return self.status

    async def refresh(self) -> SimulationStatus:
        return await self.initialize()

    async def generate_test_data(self, count: int | None = None, *, auto_save: bool | None = None) -> list[dict[str, Any]]:
        """Generate donors and, when auto-save is on, bulk-create them."""
        sim = self.simulation_settings
        auto_save = sim.auto_save if auto_save is None else auto_save
        donors = await self.controls.generate_test_data(
            count or sim.donor_count,
            self.org_id,
            auto_save,
            realism=sim.realism_value,
        )
        if auto_save:
            await self.generated.persist()
        return donors

    def update_settings(self, sim_settings: SimulationSettings, *, persist: bool = True) -> None:
        self.simulation_settings = sim_settings
        if persist:
            save_simulation_settings(sim_settings, self._config.SIMULATION_SETTINGS_FILE)

    async def aclose(self) -> None:
        """Tear down timers and the transport.  In-flight calls are not cancelled."""
        if self._closed:
            return
        self._closed = True
        await self.poller.stop()
        await self.service.aclose()
        self.chat.end_all()
        self.projector.close()
        self.generated.close()
        self._unsubscribe()
        await self.client.aclose()

    async def __aenter__(self) -> "AIProvider":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
