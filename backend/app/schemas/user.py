"""
User-related schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class LoginRequest(BaseModel):
    """Identity-provider sign-in payload (uid and verified email)."""
    uid: str = Field(min_length=1, max_length=128)
    email: EmailStr
    display_name: Optional[str] = None
    photo_url: Optional[str] = None


class UserUpdate(BaseModel):
    """Profile fields a user may change."""
    display_name: Optional[str] = Field(default=None, max_length=255)
    photo_url: Optional[str] = None


class UserResponse(BaseModel):
    """Schema for user response."""
    id: str
    uid: str
    email: str
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    created_at: datetime
    last_login_at: Optional[datetime] = None

    class Config:
        from_attributes = True
