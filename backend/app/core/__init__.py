"""
Core infrastructure modules.
"""

from app.core.database import get_db, init_db
from app.core.dispatch import best_effort, best_effort_task
from app.core.errors import (
    ConflictError,
    InvitationExpiredError,
    NotFoundError,
    PermissionDeniedError,
)
from app.core.security import create_access_token, get_current_user

__all__ = [
    "get_db",
    "init_db",
    "best_effort",
    "best_effort_task",
    "ConflictError",
    "InvitationExpiredError",
    "NotFoundError",
    "PermissionDeniedError",
    "get_current_user",
    "create_access_token",
]
