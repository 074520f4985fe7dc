"""WebSocket bridge: pushes bus broadcasts and new notifications to dashboard clients."""

from __future__ import annotations

import asyncio
import enum
import json
import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from donorconnect.events.types import EventRecord
from donorconnect.notifications.models import Notification

logger = logging.getLogger("donorconnect.api")


class MessageType(str, enum.Enum):
    BROADCAST = "broadcast"
    STATUS = "status"
    NOTIFICATION = "notification"
    ERROR = "error"


class ConnectionManager:
    """Tracks active WebSocket connections per organisation."""

    def __init__(self) -> None:
        self._connections: dict[str, list[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, org_id: str) -> None:
        await websocket.accept()
        self._connections.setdefault(org_id, []).append(websocket)

    async def disconnect(self, websocket: WebSocket, org_id: str) -> None:
        conns = self._connections.get(org_id, [])
        if websocket in conns:
            conns.remove(websocket)
        if not conns:
            self._connections.pop(org_id, None)

    async def send_to_org(self, org_id: str, message: dict) -> None:
        for ws in list(self._connections.get(org_id, [])):
            try:
                await ws.send_json(message)
            except Exception:
                await self.disconnect(ws, org_id)

    async def send_personal(self, websocket: WebSocket, message: dict) -> None:
        await websocket.send_json(message)

    def get_connection_count(self, org_id: str | None = None) -> int:
        if org_id is not None:
            return len(self._connections.get(org_id, []))
        return sum(len(v) for v in self._connections.values())


class _OrgSender:
    """Schedules sends to one org's sockets from synchronous callbacks.

    With no loop running, or no socket connected, the message is dropped.
    """

    def __init__(self, manager: ConnectionManager, org_id: str) -> None:
        self._manager = manager
        self._org_id = org_id
        self._tasks: set[asyncio.Task[None]] = set()

    def _send(self, what: str, message: dict[str, Any]) -> None:
        if not self._manager.get_connection_count(self._org_id):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop; dropping %s", what)
            return
        task = loop.create_task(self._manager.send_to_org(self._org_id, message))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)


class BroadcastForwarder(_OrgSender):
    """Bus broadcast forwarder sending each event to one org's sockets."""

    def __call__(self, name: str, record: EventRecord) -> None:
        self._send(f"{name} broadcast", {
            "type": MessageType.BROADCAST.value,
            "name": name,
            "event": record.to_dict(),
        })


class NotificationForwarder(_OrgSender):
    """Projector listener pushing each new notification to one org's sockets."""

    def __call__(self, notification: Notification) -> None:
        self._send(f"notification {notification.title!r}", {
            "type": MessageType.NOTIFICATION.value,
            "payload": notification.to_dict(),
        })


# Module-level singleton
manager = ConnectionManager()

router = APIRouter()


@router.websocket("/ws/{org_id}")
async def websocket_endpoint(websocket: WebSocket, org_id: str) -> None:
    await manager.connect(websocket, org_id)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                data: dict[str, Any] = json.loads(raw)
            except json.JSONDecodeError:
                await manager.send_personal(websocket, {
                    "type": MessageType.ERROR.value,
                    "detail": "invalid JSON",
                })
                continue

            msg_type = data.get("type", "")

            if msg_type == "ping":
                await manager.send_personal(websocket, {"type": "pong"})

            elif msg_type == "status":
                provider = websocket.app.state.provider
                await manager.send_personal(websocket, {
                    "type": MessageType.STATUS.value,
                    "payload": provider.status.to_dict(),
                })

            else:
                await manager.send_personal(websocket, {
                    "type": MessageType.ERROR.value,
                    "detail": f"unknown message type: {msg_type}",
                })

    except WebSocketDisconnect:
        pass
    finally:
        await manager.disconnect(websocket, org_id)
