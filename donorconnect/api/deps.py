"""FastAPI dependencies."""

from __future__ import annotations

from fastapi import Request

from donorconnect.provider import AIProvider


def get_provider(request: Request) -> AIProvider:
    return request.app.state.provider
