"""Failures raised by the RPC client."""

from __future__ import annotations

from typing import Any


class RPCError(Exception):
    """Base class for failures of a call to the AI endpoint."""

    def __init__(self, message: str, *, method: str | None = None) -> None:
        super().__init__(message)
        self.method = method


class TransportError(RPCError):
    """The endpoint answered with a non-2xx HTTP status."""

    def __init__(
        self,
        status_code: int,
        reason: str,
        body: str = "",
        *,
        method: str | None = None,
    ) -> None:
        super().__init__(f"HTTP {status_code}: {reason} - {body}", method=method)
        self.status_code = status_code
        self.reason = reason
        self.body = body


class ApplicationError(RPCError):
    """The endpoint answered 2xx but the envelope reports ``success: false``."""

    def __init__(self, envelope: dict[str, Any], *, method: str | None = None) -> None:
        message = envelope.get("error") or f"{method or 'call'} failed"
        super().__init__(str(message), method=method)
        self.envelope = envelope
