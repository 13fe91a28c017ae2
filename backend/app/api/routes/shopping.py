"""
Shopping list endpoints.

Edits are broadcast as ``shopping_list_update`` events. Committing the
list tells every other member with a ``shopping_list_updated``
notification.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_broadcaster, get_notifier
from app.core.clock import utcnow
from app.core.database import get_db
from app.core.errors import NotFoundError
from app.core.security import get_current_user
from app.models.notification import NotificationType
from app.models.shopping import ShoppingListItem
from app.models.user import User
from app.schemas.shopping import (
    ShoppingCommitRequest,
    ShoppingCommitResponse,
    ShoppingItemCreate,
    ShoppingItemResponse,
    ShoppingItemUpdate,
    ShoppingListResponse,
)
from app.services.broadcaster import ChangeBroadcaster, EventType
from app.services.membership import get_house, members_of, require_member
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter()

# Fields a partial update may set back to null
CLEARABLE_FIELDS = frozenset({"unit", "category", "note"})


async def _load(db: AsyncSession, item_id: str, user: User) -> ShoppingListItem:
    item = await db.get(ShoppingListItem, item_id)
    if item is None:
        raise NotFoundError("Shopping item")
    await require_member(db, item.house_id, user.id)
    return item


def _payload(item: ShoppingListItem) -> dict:
    return ShoppingItemResponse.model_validate(item).model_dump(mode="json")


@router.get("", response_model=ShoppingListResponse)
async def list_items(
    house_id: str,
    include_purchased: bool = True,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await require_member(db, house_id, user.id)
    query = select(ShoppingListItem).where(ShoppingListItem.house_id == house_id)
    if not include_purchased:
        query = query.where(ShoppingListItem.is_purchased.is_(False))
    result = await db.execute(query.order_by(ShoppingListItem.created_at))
    items = result.scalars().all()
    return ShoppingListResponse(
        items=[ShoppingItemResponse.model_validate(i) for i in items],
        total=len(items),
    )


@router.post("", response_model=ShoppingItemResponse, status_code=201)
async def add_item(
    request: ShoppingItemCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
):
    await require_member(db, request.house_id, user.id)
    item = ShoppingListItem(
        house_id=request.house_id,
        name=request.name,
        quantity=request.quantity,
        unit=request.unit,
        category=request.category,
        note=request.note,
        added_by_id=user.id,
    )
    db.add(item)
    await db.commit()

    payload = _payload(item)
    await broadcaster.publish(db, item.house_id, EventType.SHOPPING_LIST_UPDATE, "created", payload)
    return payload


@router.post("/commit", response_model=ShoppingCommitResponse)
async def commit_list(
    request: ShoppingCommitRequest,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
):
    """Tell the rest of the house the list has been updated."""
    await require_member(db, request.house_id, user.id)
    house = await get_house(db, request.house_id)

    message = request.message or f"{user.public_name} updated the shopping list for {house.name}"
    notified = 0
    for member_id in await members_of(db, house.id):
        if member_id == user.id:
            continue
        notification = await notifier.notify(
            user_id=member_id,
            house_id=house.id,
            notification_type=NotificationType.SHOPPING_LIST_UPDATED,
            title="Shopping list updated",
            message=message,
            data={"updated_by": user.id},
            background_tasks=background_tasks,
        )
        if notification is not None:
            notified += 1

    return ShoppingCommitResponse(notified=notified)


@router.patch("/{item_id}", response_model=ShoppingItemResponse)
async def update_item(
    item_id: str,
    request: ShoppingItemUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
):
    item = await _load(db, item_id, user)
    changes = request.model_dump(exclude_unset=True)

    purchased = changes.pop("is_purchased", None)
    for field, value in changes.items():
        if value is not None or field in CLEARABLE_FIELDS:
            setattr(item, field, value)

    action = "updated"
    if purchased is not None and purchased != item.is_purchased:
        item.is_purchased = purchased
        if purchased:
            item.purchased_by_id = user.id
            item.purchased_at = utcnow()
            action = "purchased"
        else:
            item.purchased_by_id = None
            item.purchased_at = None
    await db.commit()

    payload = _payload(item)
    await broadcaster.publish(db, item.house_id, EventType.SHOPPING_LIST_UPDATE, action, payload)
    return payload


@router.delete("/{item_id}")
async def delete_item(
    item_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
):
    item = await _load(db, item_id, user)
    house_id = item.house_id
    await db.delete(item)
    await db.commit()

    await broadcaster.publish(db, house_id, EventType.SHOPPING_LIST_UPDATE, "deleted", {"id": item_id})
    return {"status": "deleted", "id": item_id}
