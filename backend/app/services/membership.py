"""
Membership directory.

Resolves which users belong to which house. The broadcaster uses
``members_of`` to find fan-out targets. ``remove_member`` is the one
mutating operation and releases the member's open task assignments in
the same commit that deletes the membership.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConflictError, NotFoundError, PermissionDeniedError
from app.models.house import House, HouseMember, MemberRole
from app.models.task import ACTIVE_ASSIGNMENT_STATUSES, Task, TaskStatus
from app.models.user import User
from app.services.role_policy import MemberAction, check_member_action, is_manager

logger = logging.getLogger(__name__)


async def members_of(db: AsyncSession, house_id: str) -> List[str]:
    """User ids of every current member of the house."""
    result = await db.execute(
        select(HouseMember.user_id)
        .where(HouseMember.house_id == house_id)
        .order_by(HouseMember.joined_at)
    )
    return list(result.scalars().all())


async def memberships_for_user(
    db: AsyncSession, user_id: str
) -> List[Tuple[House, HouseMember]]:
    """Every (house, membership) pair for the user, oldest membership first."""
    result = await db.execute(
        select(House, HouseMember)
        .join(HouseMember, HouseMember.house_id == House.id)
        .where(HouseMember.user_id == user_id)
        .order_by(HouseMember.joined_at)
    )
    return [(house, membership) for house, membership in result.all()]


async def houses_for_user(db: AsyncSession, user_id: str) -> List[House]:
    """All houses the user belongs to."""
    return [house for house, _ in await memberships_for_user(db, user_id)]


async def member_profiles(
    db: AsyncSession, house_id: str
) -> List[Tuple[HouseMember, User]]:
    result = await db.execute(
        select(HouseMember, User)
        .join(User, User.id == HouseMember.user_id)
        .where(HouseMember.house_id == house_id)
        .order_by(HouseMember.joined_at)
    )
    return [(membership, user) for membership, user in result.all()]


async def get_house(db: AsyncSession, house_id: str) -> House:
    house = await db.get(House, house_id)
    if house is None:
        raise NotFoundError("House")
    return house


async def get_membership(
    db: AsyncSession, house_id: str, user_id: str
) -> Optional[HouseMember]:
    result = await db.execute(
        select(HouseMember).where(
            HouseMember.house_id == house_id,
            HouseMember.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def is_member(db: AsyncSession, house_id: str, user_id: str) -> bool:
    return await get_membership(db, house_id, user_id) is not None


async def require_member(db: AsyncSession, house_id: str, user_id: str) -> HouseMember:
    """Membership of ``user_id`` in an existing house, or raise."""
    await get_house(db, house_id)
    membership = await get_membership(db, house_id, user_id)
    if membership is None:
        raise PermissionDeniedError("You are not a member of this house")
    return membership


async def require_manager(db: AsyncSession, house_id: str, user_id: str) -> HouseMember:
    """Membership of an owner or admin, or raise."""
    membership = await require_member(db, house_id, user_id)
    if not is_manager(membership.role):
        raise PermissionDeniedError("Only house owners and admins can do this")
    return membership


async def create_house(db: AsyncSession, name: str, owner: User) -> Tuple[House, HouseMember]:
    """Create a house with ``owner`` as its first member."""
    existing = await db.execute(
        select(House.id).where(House.created_by_id == owner.id, House.name == name)
    )
    if existing.first() is not None:
        raise ConflictError(f"You already have a house named '{name}'")

    house = House(name=name, created_by_id=owner.id)
    db.add(house)
    await db.flush()

    membership = HouseMember(
        user_id=owner.id,
        house_id=house.id,
        role=MemberRole.OWNER.value,
    )
    db.add(membership)
    await db.commit()

    logger.info(f"House '{name}' created by {owner.email}")
    return house, membership


async def add_member(
    db: AsyncSession, house_id: str, user_id: str, role: MemberRole = MemberRole.MEMBER
) -> HouseMember:
    """Directly add a user to a house (no invitation)."""
    if await is_member(db, house_id, user_id):
        raise ConflictError("User is already a member of this house")

    membership = HouseMember(user_id=user_id, house_id=house_id, role=MemberRole(role).value)
    db.add(membership)
    await db.commit()
    return membership


async def count_owners(db: AsyncSession, house_id: str) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(HouseMember)
        .where(
            HouseMember.house_id == house_id,
            HouseMember.role == MemberRole.OWNER.value,
        )
    )
    return result.scalar_one()


async def remove_member(db: AsyncSession, house_id: str, user_id: str) -> List[Task]:
    """
    Remove ``user_id`` from the house.

    Tasks in the house that are assigned to the user and still open
    (assigned or in progress) go back to ``created`` with no assignee. The
    task reset and the membership deletion are committed together; on any
    failure neither is applied.

    Returns the tasks that were released.
    """
    membership = await get_membership(db, house_id, user_id)
    if membership is None:
        raise NotFoundError("Member")

    if membership.role == MemberRole.OWNER.value and await count_owners(db, house_id) <= 1:
        raise ConflictError("The last owner cannot leave the house")

    result = await db.execute(
        select(Task).where(
            Task.house_id == house_id,
            Task.assigned_to_id == user_id,
            Task.status.in_(ACTIVE_ASSIGNMENT_STATUSES),
        )
    )
    released = list(result.scalars().all())
    for task in released:
        task.status = TaskStatus.CREATED.value
        task.assigned_to_id = None

    await db.delete(membership)

    try:
        await db.commit()
    except Exception:
        await db.rollback()
        logger.error(f"Removing user {user_id} from house {house_id} failed; rolled back")
        raise

    logger.info(
        f"User {user_id} removed from house {house_id}; "
        f"{len(released)} task(s) returned to the pool"
    )
    return released


async def change_role(
    db: AsyncSession, actor: HouseMember, target: HouseMember, new_role: MemberRole
) -> HouseMember:
    check_member_action(actor, target, MemberAction.CHANGE_ROLE, new_role=new_role)
    target.role = MemberRole(new_role).value
    await db.commit()
    return target


async def change_permissions(
    db: AsyncSession, actor: HouseMember, target: HouseMember, permissions: dict
) -> HouseMember:
    check_member_action(actor, target, MemberAction.CHANGE_PERMISSIONS)
    # Reassign so the JSON column is flagged dirty
    target.permissions = {**(target.permissions or {}), **permissions}
    await db.commit()
    return target
