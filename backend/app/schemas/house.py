"""
House and membership schemas.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field

from app.models.house import MemberRole


class HouseCreate(BaseModel):
    """Schema for creating a house."""
    name: str = Field(min_length=1, max_length=255)


class HouseResponse(BaseModel):
    """House as seen by one of its members."""
    id: str
    name: str
    created_by_id: str
    created_at: datetime
    role: Optional[str] = None

    class Config:
        from_attributes = True


class MemberResponse(BaseModel):
    """House member with the user's public profile."""
    id: str
    house_id: str
    user_id: str
    role: str
    permissions: Dict[str, bool]
    joined_at: datetime
    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None


class MemberAdd(BaseModel):
    """Add an existing user to the house directly."""
    email: EmailStr
    role: MemberRole = MemberRole.MEMBER


class MemberListResponse(BaseModel):
    members: List[MemberResponse]
    total: int


class MemberRoleUpdate(BaseModel):
    role: MemberRole


class MemberPermissionsUpdate(BaseModel):
    permissions: Dict[str, bool]
