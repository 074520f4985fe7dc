"""Simulation status and control endpoints."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from donorconnect.api.deps import get_provider
from donorconnect.config.simulation_settings import SimulationSettings
from donorconnect.provider import AIProvider

router = APIRouter(prefix="/api/simulation", tags=["simulation"])


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class StartRequest(BaseModel):
    org_id: Optional[str] = None
    settings: Optional[SimulationSettings] = None


class GenerateRequest(BaseModel):
    count: int = Field(default=5, ge=1, le=500)
    auto_save: Optional[bool] = None


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.get("/status")
async def get_status(provider: AIProvider = Depends(get_provider)) -> dict:
    return provider.status.to_dict()


@router.post("/start")
async def start_simulation(
    body: Optional[StartRequest] = None,
    provider: AIProvider = Depends(get_provider),
) -> dict:
    body = body or StartRequest()
    options = body.settings or provider.simulation_settings
    data = await provider.controls.start(body.org_id, options)
    return {"success": True, "data": data, "status": provider.status.to_dict()}


@router.post("/resume")
async def resume_simulation(provider: AIProvider = Depends(get_provider)) -> dict:
    data = await provider.controls.resume()
    return {"success": True, "data": data, "status": provider.status.to_dict()}


@router.post("/pause")
async def pause_simulation(provider: AIProvider = Depends(get_provider)) -> dict:
    data = await provider.controls.pause()
    return {"success": True, "data": data, "status": provider.status.to_dict()}


@router.post("/stop")
async def stop_simulation(provider: AIProvider = Depends(get_provider)) -> dict:
    data = await provider.controls.stop()
    return {"success": True, "data": data, "status": provider.status.to_dict()}


@router.get("/stats")
async def simulation_stats(provider: AIProvider = Depends(get_provider)) -> dict:
    stats = await provider.controls.get_stats()
    return {"success": True, "data": stats}


@router.post("/generate")
async def generate_test_data(
    body: GenerateRequest,
    provider: AIProvider = Depends(get_provider),
) -> dict[str, Any]:
    donors = await provider.generate_test_data(body.count, auto_save=body.auto_save)
    return {
        "success": True,
        "data": donors,
        "pending": len(provider.generated.donors),
        "bulkProgress": provider.generated.progress.to_dict(),
    }
