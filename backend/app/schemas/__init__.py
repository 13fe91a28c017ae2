"""
Pydantic schemas for API validation.
"""

from app.schemas.device import DeviceCreate, DeviceResponse, DeviceUpdate
from app.schemas.house import HouseCreate, HouseResponse, MemberResponse
from app.schemas.invitation import InvitationCreate, InvitationResponse
from app.schemas.notification import NotificationResponse, PushSubscriptionCreate
from app.schemas.shopping import ShoppingItemCreate, ShoppingItemResponse, ShoppingItemUpdate
from app.schemas.task import TaskCreate, TaskResponse, TaskUpdate
from app.schemas.user import LoginRequest, UserResponse

__all__ = [
    "DeviceCreate",
    "DeviceResponse",
    "DeviceUpdate",
    "HouseCreate",
    "HouseResponse",
    "MemberResponse",
    "InvitationCreate",
    "InvitationResponse",
    "NotificationResponse",
    "PushSubscriptionCreate",
    "ShoppingItemCreate",
    "ShoppingItemResponse",
    "ShoppingItemUpdate",
    "TaskCreate",
    "TaskResponse",
    "TaskUpdate",
    "LoginRequest",
    "UserResponse",
]
