"""Simulation status, control surface and backends."""

from .chat import ChatMessage, ChatSession, DonorChat
from .controls import SimulationControls
from .generated import BulkProgress, GeneratedDonorBuffer
from .poller import FALLBACK_ACTIVITY, ActivityPoller
from .service import (
    LocalSimulationService,
    RemoteSimulationService,
    SimulationError,
    SimulationService,
)
from .status import BondingState, SimulationCounters, SimulationStatus, StatusAggregator

__all__ = [
    "FALLBACK_ACTIVITY",
    "ActivityPoller",
    "BondingState",
    "BulkProgress",
    "ChatMessage",
    "ChatSession",
    "DonorChat",
    "GeneratedDonorBuffer",
    "LocalSimulationService",
    "RemoteSimulationService",
    "SimulationControls",
    "SimulationCounters",
    "SimulationError",
    "SimulationService",
    "SimulationStatus",
    "StatusAggregator",
]
