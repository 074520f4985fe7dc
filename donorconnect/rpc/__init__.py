"""RPC client for the multiplexed AI endpoint."""

from .client import AIDataClient
from .errors import ApplicationError, RPCError, TransportError

__all__ = ["AIDataClient", "ApplicationError", "RPCError", "TransportError"]
