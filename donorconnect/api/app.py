"""DonorConnect FastAPI application."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from donorconnect import __version__
from donorconnect.api import websocket
from donorconnect.api.routes import health, notifications, simulation
from donorconnect.config.settings import settings
from donorconnect.provider import AIProvider
from donorconnect.rpc.errors import RPCError
from donorconnect.simulation.service import SimulationError


def create_app(provider: AIProvider | None = None) -> FastAPI:
    """Build the app; without *provider* one is created from settings at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        ai = provider or AIProvider.from_settings()
        app.state.provider = ai
        remove_forwarder = ai.bus.broadcasts.add_forwarder(
            websocket.BroadcastForwarder(websocket.manager, ai.org_id)
        )
        remove_notifier = ai.projector.add_listener(
            websocket.NotificationForwarder(websocket.manager, ai.org_id)
        )
        if provider is None:
            # Failure leaves the provider in the "AI offline" state; routes still serve.
            await ai.initialize()
        yield
        remove_notifier()
        remove_forwarder()
        if provider is None:
            await ai.aclose()

    app = FastAPI(
        title="DonorConnect Simulation",
        version=__version__,
        lifespan=lifespan,
    )
    if provider is not None:
        app.state.provider = provider

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for router in (health.router, simulation.router, notifications.router, websocket.router):
        app.include_router(router)

    # --- Exception handlers ---

    @app.exception_handler(RPCError)
    async def rpc_error_handler(request: Request, exc: RPCError) -> JSONResponse:
        return JSONResponse(status_code=502, content={"success": False, "detail": str(exc)})

    @app.exception_handler(SimulationError)
    async def simulation_error_handler(request: Request, exc: SimulationError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"success": False, "detail": str(exc)})

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"success": False, "detail": str(exc)})

    return app
