"""Tests for donorconnect.simulation.status - the status state machine."""

from __future__ import annotations

import random

import pytest

from donorconnect.events import EventBus, EventType
from donorconnect.simulation.status import (
    RECENT_ACTIVITY_LIMIT,
    SimulationCounters,
    StatusAggregator,
)


@pytest.fixture
def aggregator() -> StatusAggregator:
    return StatusAggregator()


@pytest.fixture
def bus(aggregator) -> EventBus:
    bus = EventBus()
    bus.subscribe(aggregator.handle_event)
    return bus


def _pair(aggregator: StatusAggregator) -> tuple[bool, bool]:
    sim = aggregator.status.simulation
    return sim.is_running, sim.is_paused


# ===========================================================================
# Run-state transitions
# ===========================================================================

class TestTransitions:
    def test_initial_state_is_stopped(self, aggregator):
        assert _pair(aggregator) == (False, False)
        assert aggregator.status.simulation.state == "stopped"

    def test_start_from_any_state(self, aggregator):
        aggregator.mark_started()
        assert _pair(aggregator) == (True, False)
        aggregator.mark_paused()
        aggregator.mark_started()
        assert _pair(aggregator) == (True, False)

    def test_pause_from_running(self, aggregator):
        aggregator.mark_started()
        assert aggregator.mark_paused() is True
        assert _pair(aggregator) == (False, True)
        assert aggregator.status.simulation.state == "paused"

    def test_pause_ignored_when_stopped(self, aggregator):
        assert aggregator.mark_paused() is False
        assert _pair(aggregator) == (False, False)

    def test_pause_ignored_when_paused(self, aggregator):
        aggregator.mark_started()
        aggregator.mark_paused()
        assert aggregator.mark_paused() is False
        assert _pair(aggregator) == (False, True)

    def test_stop_zeroes_counters(self, aggregator, bus):
        aggregator.mark_started(active_donors=12)
        for _ in range(3):
            bus.publish(EventType.DONATION, {"amount": 50})
        aggregator.mark_stopped()
        sim = aggregator.status.simulation
        assert _pair(aggregator) == (False, False)
        assert sim.active_donors == 0
        assert sim.total_activities == 0
        assert sim.total_donations == 0

    def test_random_sequences_never_running_and_paused(self, aggregator):
        rng = random.Random(42)
        actions = [
            aggregator.mark_started,
            aggregator.mark_paused,
            aggregator.mark_stopped,
            lambda: aggregator.mark_started(),  # resume
        ]
        for _ in range(500):
            rng.choice(actions)()
            assert _pair(aggregator) in {(True, False), (False, True), (False, False)}

    def test_start_clears_error(self, aggregator):
        aggregator.record_error("boom")
        aggregator.mark_started()
        assert aggregator.status.error is None


# ===========================================================================
# Counters from bus events
# ===========================================================================

class TestCounters:
    def test_donation_additivity(self, aggregator, bus):
        n, amount = 7, 125.5
        for _ in range(n):
            bus.publish(EventType.DONATION, {"amount": amount})
        sim = aggregator.status.simulation
        assert sim.total_donations == pytest.approx(n * amount)
        assert sim.total_activities == n

    def test_communication_and_profile_update_count_only_activities(self, aggregator, bus):
        bus.publish(EventType.COMMUNICATION, {"amount": 999})
        bus.publish(EventType.PROFILE_UPDATE, {})
        sim = aggregator.status.simulation
        assert sim.total_activities == 2
        assert sim.total_donations == 0

    def test_status_change_is_not_an_activity(self, aggregator, bus):
        bus.publish(EventType.STATUS_CHANGE, {"status": "LYBUNT"})
        assert aggregator.status.simulation.total_activities == 0

    def test_counters_are_additive_on_top_of_stats(self, aggregator, bus):
        aggregator.merge_stats({"totalActivities": 10, "totalDonations": 1000})
        bus.publish(EventType.DONATION, {"amount": 5})
        sim = aggregator.status.simulation
        assert sim.total_activities == 11
        assert sim.total_donations == 1005

    def test_bad_amount_counts_as_zero(self, aggregator, bus):
        bus.publish(EventType.DONATION, {"amount": "lots"})
        assert aggregator.status.simulation.total_donations == 0
        assert aggregator.status.simulation.total_activities == 1

    def test_bonding_sessions(self, aggregator, bus):
        bus.publish(EventType.BONDING_STARTED, {})
        bus.publish(EventType.BONDING_STARTED, {})
        bus.publish(EventType.BONDING_ENDED, {})
        assert aggregator.status.bonding.active_sessions == 1
        bus.publish(EventType.BONDING_ENDED, {})
        bus.publish(EventType.BONDING_ENDED, {})
        assert aggregator.status.bonding.active_sessions == 0

    def test_events_prepend_recent_activity(self, aggregator, bus):
        bus.publish(EventType.DONATION, {"id": "a", "amount": 1})
        bus.publish(EventType.COMMUNICATION, {"id": "b"})
        recent = aggregator.status.recent_activity
        assert [item["id"] for item in recent] == ["b", "a"]
        assert recent[0]["type"] == "communication"

    def test_recent_activity_is_capped(self, aggregator, bus):
        for i in range(RECENT_ACTIVITY_LIMIT + 5):
            bus.publish(EventType.ENGAGEMENT, {"id": i})
        assert len(aggregator.status.recent_activity) == RECENT_ACTIVITY_LIMIT

    def test_run_state_events_do_not_touch_counters(self, aggregator, bus):
        bus.publish(EventType.SIMULATION_STARTED, {})
        bus.publish(EventType.DATA_GENERATED, {"donors": []})
        assert aggregator.status.simulation == SimulationCounters()


# ===========================================================================
# Stats, initialization, activity feed
# ===========================================================================

class TestMergeAndInit:
    def test_merge_stats_keeps_run_state(self, aggregator):
        aggregator.mark_started()
        aggregator.mark_paused()
        aggregator.merge_stats({"activeDonors": 4, "totalActivities": 9, "totalDonations": 12.5})
        sim = aggregator.status.simulation
        assert _pair(aggregator) == (False, True)
        assert (sim.active_donors, sim.total_activities, sim.total_donations) == (4, 9, 12.5)

    def test_mark_initialized(self, aggregator):
        aggregator.mark_initialized({"totalDonors": 5})
        assert aggregator.status.initialized is True
        assert aggregator.status.data_summary == {"totalDonors": 5}
        assert aggregator.status.last_update is not None

    def test_initialization_failure(self, aggregator):
        aggregator.mark_initialization_failed("HTTP 503")
        assert aggregator.status.initialized is False
        assert aggregator.status.error == "HTTP 503"

    def test_listeners_are_notified_and_isolated(self, aggregator):
        seen = []

        def broken(status):
            raise RuntimeError("listener failure")

        aggregator.add_listener(broken)
        remove = aggregator.add_listener(lambda s: seen.append(s.initialized))
        aggregator.mark_initialized(None)
        remove()
        aggregator.mark_started()
        assert seen == [True]

    def test_to_dict_shape(self, aggregator):
        d = aggregator.status.to_dict()
        assert d["simulation"] == {
            "isRunning": False,
            "isPaused": False,
            "activeDonors": 0,
            "totalActivities": 0,
            "totalDonations": 0.0,
        }
        assert d["bonding"] == {"activeSessions": 0}
        assert d["lastUpdate"] is None


class TestActivityFeed:
    def test_apply_activity_replaces_and_clears_error(self, aggregator):
        aggregator.apply_activity_fallback([{"id": "sample-1"}], "down")
        assert aggregator.apply_activity([{"id": "x"}]) is True
        assert aggregator.status.recent_activity == [{"id": "x"}]
        assert aggregator.status.activity_error is None

    def test_stale_snapshot_is_dropped(self, aggregator, bus):
        version = aggregator.activity_version
        bus.publish(EventType.DONATION, {"id": "live", "amount": 1})
        assert aggregator.apply_activity([{"id": "old"}], since_version=version) is False
        assert aggregator.status.recent_activity[0]["id"] == "live"

    def test_current_snapshot_is_applied(self, aggregator):
        version = aggregator.activity_version
        assert aggregator.apply_activity([{"id": "new"}], since_version=version) is True
