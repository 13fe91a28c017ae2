"""
Database models for HomeManager.
"""

from app.models.user import PushSubscription, User
from app.models.house import House, HouseMember
from app.models.invitation import Invitation
from app.models.task import Task
from app.models.device import Device
from app.models.shopping import ShoppingListItem
from app.models.notification import Notification

__all__ = [
    "User",
    "PushSubscription",
    "House",
    "HouseMember",
    "Invitation",
    "Task",
    "Device",
    "ShoppingListItem",
    "Notification",
]
