"""Notification records shown to dashboard users."""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


class Importance(str, enum.Enum):
    NORMAL = "normal"
    IMPORTANT = "important"


class NotificationType(str, enum.Enum):
    SYSTEM = "system"
    WELCOME = "welcome"
    SIMULATION = "simulation"
    BONDING = "bonding"
    DONATION = "donation"
    ACTIVITY = "ai_activity"


@dataclass
class Notification:
    """One toast-like notification.

    Attributes:
        id: Unique identifier.
        type: Category used for icon/grouping.
        title: Short headline.
        message: Body text.
        importance: Controls the auto-expiry delay.
        data: Free-form payload; activity notifications carry ``sourceId``.
        read: Read notifications are never auto-expired.
        timestamp: Creation time (UTC).
        expires_at: Clock reading after which an unread notification is removed.
    """

    type: NotificationType
    title: str
    message: str
    importance: Importance = Importance.NORMAL
    data: dict[str, Any] = field(default_factory=dict)
    read: bool = False
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    expires_at: float | None = None

    @property
    def source_id(self) -> Any:
        return self.data.get("sourceId")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "importance": self.importance.value,
            "data": self.data,
            "read": self.read,
        }
