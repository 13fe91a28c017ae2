"""
Invitation token store.

State machine per invitation:

    pending --accept--> accepted
    pending --expire (now > expires_at)--> expired
    pending --revoke/decline--> (deleted)

``accepted`` and ``expired`` are terminal. Expiry is applied lazily when an
invitation is fetched or accepted, and the transition is persisted even
though the request itself fails.
"""

import logging
import secrets
from datetime import timedelta
from typing import List, Tuple

from fastapi import BackgroundTasks
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.core.clock import utcnow
from app.core.dispatch import best_effort_task, log_failure
from app.core.errors import (
    ConflictError,
    InvitationExpiredError,
    NotFoundError,
    PermissionDeniedError,
)
from app.models.house import House, HouseMember, MemberRole
from app.models.invitation import Invitation, InvitationStatus
from app.models.notification import NotificationType
from app.models.user import User
from app.services.mailer import Mailer
from app.services.membership import get_membership
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

# 32 random bytes, URL-safe base64 (43 chars)
TOKEN_BYTES = 32


def generate_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


def invite_link(token: str) -> str:
    settings = get_settings()
    return f"{settings.public_app_url.rstrip('/')}/accept-invite?token={token}"


async def _unique_token(db: AsyncSession) -> str:
    while True:
        token = generate_token()
        result = await db.execute(select(Invitation.id).where(Invitation.token == token))
        if result.first() is None:
            return token


async def _expire(db: AsyncSession, invitation: Invitation) -> None:
    """Persist the pending -> expired transition."""
    invitation.status = InvitationStatus.EXPIRED.value
    await db.commit()
    logger.info(f"Invitation {invitation.id} for {invitation.email} expired")


async def get_by_token(db: AsyncSession, token: str) -> Invitation:
    result = await db.execute(select(Invitation).where(Invitation.token == token))
    invitation = result.scalar_one_or_none()
    if invitation is None:
        raise NotFoundError("Invitation")
    return invitation


async def create_invitation(
    db: AsyncSession,
    house: House,
    inviter: User,
    email: str,
    role: MemberRole = MemberRole.MEMBER,
) -> Invitation:
    """
    Issue a pending invitation for ``email`` to join ``house``.

    Rejected when the email already belongs to a member of the house or a
    pending, unexpired invitation for the same (house, email) exists. A
    pending invitation that has run past its expiry is expired here instead
    of blocking the new one.
    """
    if MemberRole(role) == MemberRole.OWNER:
        raise ConflictError("The owner role cannot be granted")

    member = await db.execute(
        select(HouseMember.id)
        .join(User, User.id == HouseMember.user_id)
        .where(HouseMember.house_id == house.id, User.email == email)
    )
    if member.first() is not None:
        raise ConflictError("User is already a member of this house")

    result = await db.execute(
        select(Invitation).where(
            Invitation.house_id == house.id,
            Invitation.email == email,
            Invitation.status == InvitationStatus.PENDING.value,
        )
    )
    now = utcnow()
    for pending in result.scalars().all():
        if not pending.is_past_expiry(now):
            raise ConflictError("An invitation is already pending for this email")
        pending.status = InvitationStatus.EXPIRED.value

    invitation = Invitation(
        house_id=house.id,
        email=email,
        role=MemberRole(role).value,
        invited_by_id=inviter.id,
        token=await _unique_token(db),
        status=InvitationStatus.PENDING.value,
        expires_at=now + timedelta(days=get_settings().invitation_ttl_days),
    )
    db.add(invitation)
    await db.commit()

    logger.info(f"Invitation to {house.name} issued for {email} by {inviter.email}")
    return invitation


async def dispatch_invitation(
    db: AsyncSession,
    invitation: Invitation,
    house: House,
    inviter: User,
    mailer: Mailer,
    notifier: NotificationService,
    background_tasks: BackgroundTasks,
) -> None:
    """
    Tell the invitee: email always, plus an in-app notification and push
    when they already have an account. Never raises; the invitation stays
    valid whatever happens here.
    """
    inviter_name = inviter.public_name
    link = invite_link(invitation.token)

    background_tasks.add_task(
        best_effort_task(
            mailer.send_invitation,
            invitation.email,
            house.name,
            inviter_name,
            invitation.role,
            link,
            description=f"invitation email to {invitation.email}",
        )
    )

    try:
        result = await db.execute(select(User).where(User.email == invitation.email))
        invitee = result.scalar_one_or_none()
    except Exception as e:
        log_failure(f"invitee lookup for {invitation.email}", e)
        return

    if invitee is None:
        return

    await notifier.notify(
        user_id=invitee.id,
        house_id=house.id,
        notification_type=NotificationType.HOUSE_INVITATION,
        title="House invitation",
        message=f"{inviter_name} invited you to join {house.name}",
        data={"invitation_id": invitation.id, "token": invitation.token, "link": link},
        background_tasks=background_tasks,
    )


async def fetch_by_token(db: AsyncSession, token: str) -> Tuple[Invitation, House]:
    """
    Look up a live invitation and its house.

    Expired and accepted invitations raise InvitationExpiredError; a
    pending one past its expiry is transitioned to expired first.
    """
    invitation = await get_by_token(db, token)

    if invitation.status == InvitationStatus.ACCEPTED.value:
        raise InvitationExpiredError("This invitation has already been accepted")
    if invitation.status == InvitationStatus.EXPIRED.value:
        raise InvitationExpiredError("This invitation has expired")
    if invitation.is_past_expiry():
        await _expire(db, invitation)
        raise InvitationExpiredError("This invitation has expired")

    house = await db.get(House, invitation.house_id)
    if house is None:
        raise NotFoundError("House")
    return invitation, house


async def accept_invitation(db: AsyncSession, token: str, user: User) -> Tuple[Invitation, HouseMember]:
    """
    Join the invitation's house as ``user``.

    Checks run in order: the invitation exists, the user's email matches
    the invited email exactly, the invitation has not expired, the user is
    not already a member, the invitation is still pending. The membership
    and the ``accepted`` status are committed together.
    """
    invitation = await get_by_token(db, token)

    if user.email != invitation.email:
        raise PermissionDeniedError("This invitation was sent to a different email address")

    if invitation.is_pending and invitation.is_past_expiry():
        await _expire(db, invitation)
        raise InvitationExpiredError("This invitation has expired")

    if await get_membership(db, invitation.house_id, user.id) is not None:
        if invitation.is_pending:
            invitation.status = InvitationStatus.ACCEPTED.value
            await db.commit()
        raise ConflictError("You are already a member of this house")

    if not invitation.is_pending:
        raise InvitationExpiredError()

    membership = HouseMember(
        user_id=user.id,
        house_id=invitation.house_id,
        role=invitation.role,
    )
    db.add(membership)
    invitation.status = InvitationStatus.ACCEPTED.value

    try:
        await db.commit()
    except IntegrityError:
        # Joined through another path between the check and the commit
        await db.rollback()
        await db.refresh(invitation)
        if invitation.is_pending:
            invitation.status = InvitationStatus.ACCEPTED.value
            await db.commit()
        raise ConflictError("You are already a member of this house")

    logger.info(f"{user.email} joined house {invitation.house_id} as {invitation.role}")
    return invitation, membership


async def decline_invitation(db: AsyncSession, token: str, user: User) -> None:
    """The invitee turns the invitation down; the record is deleted."""
    invitation = await get_by_token(db, token)
    if user.email != invitation.email:
        raise PermissionDeniedError("This invitation was sent to a different email address")
    if not invitation.is_pending:
        raise InvitationExpiredError()

    await db.delete(invitation)
    await db.commit()
    logger.info(f"Invitation {invitation.id} declined by {user.email}")


async def revoke_invitation(db: AsyncSession, house_id: str, invitation_id: str) -> None:
    """A house manager withdraws a pending invitation; the record is deleted."""
    invitation = await db.get(Invitation, invitation_id)
    if invitation is None or invitation.house_id != house_id:
        raise NotFoundError("Invitation")
    if not invitation.is_pending:
        raise InvitationExpiredError()

    await db.delete(invitation)
    await db.commit()
    logger.info(f"Invitation {invitation_id} to house {house_id} revoked")


async def pending_for_house(db: AsyncSession, house_id: str) -> List[Invitation]:
    result = await db.execute(
        select(Invitation)
        .where(
            Invitation.house_id == house_id,
            Invitation.status == InvitationStatus.PENDING.value,
        )
        .order_by(Invitation.created_at.desc())
    )
    now = utcnow()
    return [i for i in result.scalars().all() if not i.is_past_expiry(now)]


async def pending_for_email(db: AsyncSession, email: str) -> List[Invitation]:
    result = await db.execute(
        select(Invitation)
        .where(
            Invitation.email == email,
            Invitation.status == InvitationStatus.PENDING.value,
        )
        .order_by(Invitation.created_at.desc())
    )
    now = utcnow()
    return [i for i in result.scalars().all() if not i.is_past_expiry(now)]
