"""
Web Push subscription endpoints.
"""

import json
import logging

from fastapi import APIRouter, Depends
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_notifier
from app.core.database import get_db
from app.core.security import get_current_user
from app.models.user import PushSubscription, User
from app.schemas.notification import (
    PushSubscriptionCreate,
    PushUnsubscribeRequest,
    VapidKeyResponse,
)
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/vapid-public-key", response_model=VapidKeyResponse)
async def get_vapid_public_key(notifier: NotificationService = Depends(get_notifier)):
    """Public key browsers need for ``pushManager.subscribe``."""
    sender = notifier.push_sender
    return VapidKeyResponse(public_key=sender.public_key, enabled=sender.enabled)


@router.post("/subscribe", status_code=201)
async def subscribe(
    request: PushSubscriptionCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Register a browser subscription. An endpoint belongs to one user at a
    time; re-subscribing moves it to the current user.
    """
    subscription_json = json.dumps(request.model_dump())
    result = await db.execute(
        select(PushSubscription).where(PushSubscription.endpoint == request.endpoint)
    )
    subscription = result.scalar_one_or_none()

    if subscription is None:
        subscription = PushSubscription(
            user_id=user.id,
            endpoint=request.endpoint,
            subscription=subscription_json,
        )
        db.add(subscription)
    else:
        subscription.user_id = user.id
        subscription.subscription = subscription_json
    await db.commit()

    logger.info(f"Push subscription registered for {user.email}")
    return {"status": "subscribed", "id": subscription.id}


@router.post("/unsubscribe")
async def unsubscribe(
    request: PushUnsubscribeRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        delete(PushSubscription).where(
            PushSubscription.endpoint == request.endpoint,
            PushSubscription.user_id == user.id,
        )
    )
    await db.commit()
    return {"status": "unsubscribed", "removed": result.rowcount}
