"""
Invitation endpoints.

Managers issue, list and revoke invitations for their house. The invitee
looks an invitation up by its token, then accepts or declines it. Email,
in-app notification and push run after the invitation is committed and
never fail the request.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_broadcaster, get_mailer, get_notifier
from app.core.database import get_db
from app.core.security import get_current_user
from app.models.user import User
from app.schemas.invitation import (
    InvitationCreate,
    InvitationDetailResponse,
    InvitationListResponse,
    InvitationResponse,
)
from app.services import invitations as token_store
from app.services.broadcaster import ChangeBroadcaster, EventType
from app.services.mailer import Mailer
from app.services.membership import get_house, require_manager
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/houses/{house_id}/invitations",
    response_model=InvitationResponse,
    status_code=201,
)
async def create_invitation(
    house_id: str,
    request: InvitationCreate,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
    notifier: NotificationService = Depends(get_notifier),
):
    """Invite an email address into the house (owners and admins only)."""
    await require_manager(db, house_id, user.id)
    house = await get_house(db, house_id)

    invitation = await token_store.create_invitation(db, house, user, request.email, request.role)
    response = InvitationResponse.model_validate(invitation)

    await token_store.dispatch_invitation(
        db, invitation, house, user, mailer, notifier, background_tasks
    )
    return response


@router.get("/houses/{house_id}/invitations", response_model=InvitationListResponse)
async def list_house_invitations(
    house_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await require_manager(db, house_id, user.id)
    invitations = await token_store.pending_for_house(db, house_id)
    return InvitationListResponse(
        invitations=[InvitationResponse.model_validate(i) for i in invitations],
        total=len(invitations),
    )


@router.delete("/houses/{house_id}/invitations/{invitation_id}")
async def revoke_invitation(
    house_id: str,
    invitation_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await require_manager(db, house_id, user.id)
    await token_store.revoke_invitation(db, house_id, invitation_id)
    return {"status": "revoked", "invitation_id": invitation_id}


@router.get("/invitations", response_model=InvitationListResponse)
async def list_my_invitations(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Pending, unexpired invitations addressed to the current user's email."""
    invitations = await token_store.pending_for_email(db, user.email)
    return InvitationListResponse(
        invitations=[InvitationResponse.model_validate(i) for i in invitations],
        total=len(invitations),
    )


@router.get("/invitations/{token}", response_model=InvitationDetailResponse)
async def get_invitation(
    token: str,
    db: AsyncSession = Depends(get_db),
):
    """Look up an invitation by token, e.g. for the accept-invite page."""
    invitation, house = await token_store.fetch_by_token(db, token)
    inviter = await db.get(User, invitation.invited_by_id)
    return InvitationDetailResponse(
        invitation=InvitationResponse.model_validate(invitation),
        house_id=house.id,
        house_name=house.name,
        inviter_name=inviter.public_name if inviter else "Someone",
    )


@router.post("/invitations/{token}/accept")
async def accept_invitation(
    token: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
):
    invitation, membership = await token_store.accept_invitation(db, token, user)

    await broadcaster.publish(
        db, invitation.house_id, EventType.MEMBER_UPDATE, "joined",
        {"user_id": user.id, "role": membership.role},
    )
    return {
        "status": "accepted",
        "house_id": invitation.house_id,
        "role": membership.role,
    }


@router.post("/invitations/{token}/decline")
async def decline_invitation(
    token: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await token_store.decline_invitation(db, token, user)
    return {"status": "declined"}
