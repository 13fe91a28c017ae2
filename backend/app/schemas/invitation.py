"""
Invitation schemas.
"""

from datetime import datetime
from typing import List

from pydantic import BaseModel, EmailStr

from app.models.house import MemberRole


class InvitationCreate(BaseModel):
    """Schema for inviting an email into a house."""
    email: EmailStr
    role: MemberRole = MemberRole.MEMBER


class InvitationResponse(BaseModel):
    """Schema for invitation response."""
    id: str
    house_id: str
    email: str
    role: str
    invited_by_id: str
    token: str
    status: str
    expires_at: datetime
    created_at: datetime

    class Config:
        from_attributes = True


class InvitationDetailResponse(BaseModel):
    """Invitation looked up by token, with the house it grants access to."""
    invitation: InvitationResponse
    house_id: str
    house_name: str
    inviter_name: str


class InvitationListResponse(BaseModel):
    invitations: List[InvitationResponse]
    total: int
