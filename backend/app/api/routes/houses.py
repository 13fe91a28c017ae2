"""
House and membership endpoints.

Role changes, permission edits and removals go through the role policy.
Permission flags are stored and editable here; other endpoints do not
consult them yet.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_broadcaster
from app.core.database import get_db
from app.core.errors import ConflictError, NotFoundError
from app.core.security import get_current_user
from app.models.house import HouseMember
from app.models.user import User
from app.schemas.house import (
    HouseCreate,
    HouseResponse,
    MemberAdd,
    MemberListResponse,
    MemberPermissionsUpdate,
    MemberResponse,
    MemberRoleUpdate,
)
from app.services import membership as directory
from app.services.broadcaster import ChangeBroadcaster, EventType, build_event
from app.services.role_policy import GRANTABLE_ROLES, MemberAction, check_member_action
from app.services.tasks import task_payload

logger = logging.getLogger(__name__)

router = APIRouter()


def _member_response(membership: HouseMember, user: User) -> MemberResponse:
    return MemberResponse(
        id=membership.id,
        house_id=membership.house_id,
        user_id=membership.user_id,
        role=membership.role,
        permissions=membership.permissions or {},
        joined_at=membership.joined_at,
        email=user.email,
        display_name=user.display_name,
        photo_url=user.photo_url,
    )


def _house_response(house, role: str) -> HouseResponse:
    return HouseResponse(
        id=house.id,
        name=house.name,
        created_by_id=house.created_by_id,
        created_at=house.created_at,
        role=role,
    )


async def _target(db: AsyncSession, house_id: str, user_id: str) -> HouseMember:
    target = await directory.get_membership(db, house_id, user_id)
    if target is None:
        raise NotFoundError("Member")
    return target


@router.get("", response_model=List[HouseResponse])
async def list_houses(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Every house the current user belongs to."""
    memberships = await directory.memberships_for_user(db, user.id)
    return [_house_response(house, membership.role) for house, membership in memberships]


@router.post("", response_model=HouseResponse, status_code=201)
async def create_house(
    request: HouseCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
):
    house, membership = await directory.create_house(db, request.name, user)
    await broadcaster.publish(
        db, house.id, EventType.MEMBER_UPDATE, "joined",
        {"user_id": user.id, "role": membership.role},
    )
    return _house_response(house, membership.role)


@router.get("/{house_id}", response_model=HouseResponse)
async def get_house(
    house_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    membership = await directory.require_member(db, house_id, user.id)
    house = await directory.get_house(db, house_id)
    return _house_response(house, membership.role)


@router.get("/{house_id}/members", response_model=MemberListResponse)
async def list_members(
    house_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await directory.require_member(db, house_id, user.id)
    members = [_member_response(m, u) for m, u in await directory.member_profiles(db, house_id)]
    return MemberListResponse(members=members, total=len(members))


@router.post("/{house_id}/members", response_model=MemberResponse, status_code=201)
async def add_member(
    house_id: str,
    request: MemberAdd,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
):
    """Add a user who already has an account, skipping the invitation."""
    await directory.require_manager(db, house_id, user.id)
    if request.role not in GRANTABLE_ROLES:
        raise ConflictError("The owner role cannot be granted")

    result = await db.execute(select(User).where(User.email == request.email))
    new_user = result.scalar_one_or_none()
    if new_user is None:
        raise NotFoundError("User")

    membership = await directory.add_member(db, house_id, new_user.id, request.role)
    await broadcaster.publish(
        db, house_id, EventType.MEMBER_UPDATE, "joined",
        {"user_id": new_user.id, "role": membership.role},
    )
    return _member_response(membership, new_user)


@router.patch("/{house_id}/members/{user_id}/role", response_model=MemberResponse)
async def change_member_role(
    house_id: str,
    user_id: str,
    request: MemberRoleUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
):
    actor = await directory.require_member(db, house_id, user.id)
    target = await _target(db, house_id, user_id)
    target = await directory.change_role(db, actor, target, request.role)

    await broadcaster.publish(
        db, house_id, EventType.MEMBER_UPDATE, "role_changed",
        {"user_id": user_id, "role": target.role},
    )
    target_user = await db.get(User, user_id)
    return _member_response(target, target_user)


@router.patch("/{house_id}/members/{user_id}/permissions", response_model=MemberResponse)
async def change_member_permissions(
    house_id: str,
    user_id: str,
    request: MemberPermissionsUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
):
    actor = await directory.require_member(db, house_id, user.id)
    target = await _target(db, house_id, user_id)
    target = await directory.change_permissions(db, actor, target, request.permissions)

    await broadcaster.publish(
        db, house_id, EventType.MEMBER_UPDATE, "permissions_changed",
        {"user_id": user_id, "permissions": target.permissions},
    )
    target_user = await db.get(User, user_id)
    return _member_response(target, target_user)


@router.delete("/{house_id}/members/{user_id}")
async def remove_member(
    house_id: str,
    user_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
):
    """Remove a member, or leave the house when ``user_id`` is yourself."""
    actor = await directory.require_member(db, house_id, user.id)
    target = await _target(db, house_id, user_id)
    check_member_action(actor, target, MemberAction.REMOVE)

    released = await directory.remove_member(db, house_id, user_id)

    action = "left" if user_id == user.id else "removed"
    await broadcaster.publish(
        db, house_id, EventType.MEMBER_UPDATE, action, {"user_id": user_id}
    )
    # The removed user is no longer reached by the house broadcast
    await broadcaster.notify_user(
        user_id,
        build_event(EventType.MEMBER_UPDATE, action, house_id, {"user_id": user_id}),
    )
    for task in released:
        await broadcaster.publish(
            db, house_id, EventType.TASK_UPDATE, "unassigned", task_payload(task)
        )

    return {
        "status": action,
        "user_id": user_id,
        "released_task_ids": [task.id for task in released],
    }
