"""Holds generated donors between generation and bulk creation.

A ``data_generated`` event replaces the held list; ``persist`` sends it to
the bulk-create resource in batches and clears it; ``discard`` drops it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal

from donorconnect.config.settings import settings
from donorconnect.events.bus import EventBus
from donorconnect.events.types import EventRecord, EventType
from donorconnect.rpc.client import AIDataClient

logger = logging.getLogger(__name__)


@dataclass
class BulkProgress:
    status: Literal["idle", "preparing", "creating", "completed", "error"] = "idle"
    processed: int = 0
    total: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "processed": self.processed,
            "total": self.total,
            "error": self.error,
        }


class GeneratedDonorBuffer:
    """Subscribes to ``data_generated`` and keeps the latest donor list."""

    def __init__(
        self,
        bus: EventBus,
        client: AIDataClient,
        *,
        batch_size: int | None = None,
    ) -> None:
        self._client = client
        self._batch_size = batch_size or settings.BULK_BATCH_SIZE
        self._donors: list[dict[str, Any]] = []
        self.progress = BulkProgress()
        self._unsubscribe = bus.subscribe(self._on_event)

    @property
    def donors(self) -> list[dict[str, Any]]:
        return list(self._donors)

    def _on_event(self, record: EventRecord) -> None:
        if record.type is EventType.DATA_GENERATED:
            self._donors = list(record.data.get("donors") or [])
            logger.debug("Holding %d generated donors", len(self._donors))

    def discard(self) -> None:
        self._donors = []

    async def persist(self) -> int:
        """Bulk-create the held donors; returns how many were sent.

        The list is cleared only after every batch succeeded.  A failure
        leaves it in place, sets ``progress.status = "error"`` and re-raises.
        """
        donors = list(self._donors)
        self.progress = BulkProgress(status="preparing", total=len(donors))
        if not donors:
            self.progress.status = "completed"
            return 0

        self.progress.status = "creating"
        try:
            for start in range(0, len(donors), self._batch_size):
                batch = donors[start:start + self._batch_size]
                await self._client.bulk_create_donors(batch)
                self.progress.processed += len(batch)
        except Exception as exc:
            self.progress.status = "error"
            self.progress.error = str(exc)
            logger.error("Bulk create failed after %d/%d donors: %s",
                         self.progress.processed, len(donors), exc)
            raise

        self.progress.status = "completed"
        self._donors = []
        logger.info("Bulk-created %d generated donors", len(donors))
        return len(donors)

    def close(self) -> None:
        self._unsubscribe()
