"""
User profile endpoints.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_broadcaster
from app.core.database import get_db
from app.core.security import get_current_user
from app.models.user import User
from app.schemas.user import UserResponse, UserUpdate
from app.services.broadcaster import ChangeBroadcaster, EventType
from app.services.membership import houses_for_user

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/me", response_model=UserResponse)
async def get_profile(user: User = Depends(get_current_user)):
    return UserResponse.model_validate(user)


@router.patch("/me", response_model=UserResponse)
async def update_profile(
    request: UserUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
):
    """Update display name or avatar; housemates' member lists go stale."""
    changes = request.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(user, field, value)
    await db.commit()

    if changes:
        payload = {"user_id": user.id, **changes}
        for house in await houses_for_user(db, user.id):
            await broadcaster.publish(db, house.id, EventType.MEMBER_UPDATE, "updated", payload)

    return UserResponse.model_validate(user)
