"""Notification list endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from donorconnect.api.deps import get_provider
from donorconnect.provider import AIProvider

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("")
async def list_notifications(provider: AIProvider = Depends(get_provider)) -> dict:
    projector = provider.projector
    projector.expire_due()
    return {
        "notifications": [n.to_dict() for n in projector.notifications],
        "unread": projector.unread_count,
        "paused": projector.paused,
    }


@router.post("/{notification_id}/read")
async def mark_read(notification_id: str, provider: AIProvider = Depends(get_provider)) -> dict:
    if not provider.projector.mark_read(notification_id):
        raise HTTPException(status_code=404, detail="notification not found")
    return {"success": True}


@router.delete("")
async def clear_notifications(provider: AIProvider = Depends(get_provider)) -> dict:
    provider.projector.clear()
    return {"success": True}
