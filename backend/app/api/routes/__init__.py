"""
API route modules.
"""

from app.api.routes import (
    auth,
    devices,
    health,
    houses,
    invitations,
    notifications,
    push,
    shopping,
    tasks,
    users,
    ws,
)

__all__ = [
    "auth",
    "devices",
    "health",
    "houses",
    "invitations",
    "notifications",
    "push",
    "shopping",
    "tasks",
    "users",
    "ws",
]
