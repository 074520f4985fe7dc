"""User-facing notifications derived from simulation status and activity."""

from .models import Importance, Notification, NotificationType
from .projector import NotificationProjector

__all__ = ["Importance", "Notification", "NotificationProjector", "NotificationType"]
