"""
Request-scoped access to the objects created in the application lifespan.
"""

from fastapi import Request

from app.realtime.sessions import SessionRegistry
from app.services.broadcaster import ChangeBroadcaster
from app.services.mailer import Mailer
from app.services.notification_service import NotificationService


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def get_broadcaster(request: Request) -> ChangeBroadcaster:
    return request.app.state.broadcaster


def get_notifier(request: Request) -> NotificationService:
    return request.app.state.notifier


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer
