"""Tests for donorconnect.simulation.generated - the generated-donor buffer."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from donorconnect.events import EventBus, EventType
from donorconnect.rpc import TransportError
from donorconnect.simulation.generated import GeneratedDonorBuffer


def _donors(n: int) -> list[dict]:
    return [{"id": f"d{i}"} for i in range(n)]


@pytest.fixture
def client() -> MagicMock:
    c = MagicMock()
    c.bulk_create_donors = AsyncMock(return_value={"success": True})
    return c


class TestGeneratedDonorBuffer:
    def test_holds_exactly_the_generated_list(self, client):
        bus = EventBus()
        buffer = GeneratedDonorBuffer(bus, client, batch_size=10)
        donors = _donors(3)

        bus.publish(EventType.DATA_GENERATED, {"donors": donors})
        assert buffer.donors == donors

    def test_new_event_replaces_list(self, client):
        bus = EventBus()
        buffer = GeneratedDonorBuffer(bus, client, batch_size=10)
        bus.publish(EventType.DATA_GENERATED, {"donors": _donors(3)})
        bus.publish(EventType.DATA_GENERATED, {"donors": [{"id": "z"}]})
        assert buffer.donors == [{"id": "z"}]

    def test_other_events_ignored(self, client):
        bus = EventBus()
        buffer = GeneratedDonorBuffer(bus, client)
        bus.publish(EventType.DATA_GENERATED, {"donors": _donors(2)})
        bus.publish(EventType.DONATION, {"amount": 5})
        assert len(buffer.donors) == 2

    def test_discard(self, client):
        bus = EventBus()
        buffer = GeneratedDonorBuffer(bus, client)
        bus.publish(EventType.DATA_GENERATED, {"donors": _donors(2)})
        buffer.discard()
        assert buffer.donors == []

    @pytest.mark.asyncio
    async def test_persist_batches_and_clears(self, client):
        bus = EventBus()
        buffer = GeneratedDonorBuffer(bus, client, batch_size=2)
        bus.publish(EventType.DATA_GENERATED, {"donors": _donors(5)})

        assert await buffer.persist() == 5

        sizes = [len(call.args[0]) for call in client.bulk_create_donors.await_args_list]
        assert sizes == [2, 2, 1]
        assert buffer.donors == []
        assert buffer.progress.to_dict() == {
            "status": "completed", "processed": 5, "total": 5, "error": None,
        }

    @pytest.mark.asyncio
    async def test_persist_failure_keeps_list(self, client):
        client.bulk_create_donors.side_effect = [
            {"success": True},
            TransportError(500, "Internal Server Error", "db"),
        ]
        bus = EventBus()
        buffer = GeneratedDonorBuffer(bus, client, batch_size=2)
        bus.publish(EventType.DATA_GENERATED, {"donors": _donors(4)})

        with pytest.raises(TransportError):
            await buffer.persist()

        assert len(buffer.donors) == 4
        assert buffer.progress.status == "error"
        assert buffer.progress.processed == 2
        assert "HTTP 500" in buffer.progress.error

    @pytest.mark.asyncio
    async def test_persist_empty(self, client):
        buffer = GeneratedDonorBuffer(EventBus(), client)
        assert await buffer.persist() == 0
        assert buffer.progress.status == "completed"
        client.bulk_create_donors.assert_not_awaited()

    def test_close_unsubscribes(self, client):
        bus = EventBus()
        buffer = GeneratedDonorBuffer(bus, client)
        buffer.close()
        bus.publish(EventType.DATA_GENERATED, {"donors": _donors(2)})
        assert buffer.donors == []
        assert bus.subscriber_count == 0
