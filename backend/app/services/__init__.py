"""
Services layer for HomeManager.

Side effects and ownership:
- Membership is the only source of fan-out targets
- Broadcast, push and email are best-effort and never fail a mutation
- The session registry is injected, never imported as a global
"""

from app.services.broadcaster import ChangeBroadcaster, EventType
from app.services.mailer import Mailer
from app.services.notification_service import NotificationService
from app.services.push import WebPushSender

__all__ = [
    "ChangeBroadcaster",
    "EventType",
    "Mailer",
    "NotificationService",
    "WebPushSender",
]
