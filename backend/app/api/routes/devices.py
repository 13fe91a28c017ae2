"""
Device endpoints.

Devices are simulated; these endpoints only store their status and data
and broadcast ``device_update`` events to the house.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_broadcaster
from app.core.database import get_db
from app.core.errors import NotFoundError
from app.core.security import get_current_user
from app.models.device import Device, DeviceStatus
from app.models.user import User
from app.schemas.device import DeviceCreate, DeviceListResponse, DeviceResponse, DeviceUpdate
from app.services.broadcaster import ChangeBroadcaster, EventType
from app.services.membership import require_member

logger = logging.getLogger(__name__)

router = APIRouter()


class DeviceStatusUpdate(DeviceUpdate):
    status: DeviceStatus


async def _load(db: AsyncSession, device_id: str, user: User) -> Device:
    device = await db.get(Device, device_id)
    if device is None:
        raise NotFoundError("Device")
    await require_member(db, device.house_id, user.id)
    return device


def _payload(device: Device) -> dict:
    return DeviceResponse.model_validate(device).model_dump(mode="json")


@router.get("", response_model=DeviceListResponse)
async def list_devices(
    house_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await require_member(db, house_id, user.id)
    result = await db.execute(
        select(Device).where(Device.house_id == house_id).order_by(Device.created_at)
    )
    devices = result.scalars().all()
    return DeviceListResponse(
        devices=[DeviceResponse.model_validate(d) for d in devices],
        total=len(devices),
    )


@router.post("", response_model=DeviceResponse, status_code=201)
async def create_device(
    request: DeviceCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
):
    await require_member(db, request.house_id, user.id)
    device = Device(
        house_id=request.house_id,
        name=request.name,
        type=request.type.value,
        status=request.status.value,
        data=request.data,
    )
    db.add(device)
    await db.commit()

    payload = _payload(device)
    await broadcaster.publish(db, device.house_id, EventType.DEVICE_UPDATE, "created", payload)
    return payload


async def _apply_update(
    db: AsyncSession,
    broadcaster: ChangeBroadcaster,
    device: Device,
    request: DeviceUpdate,
) -> dict:
    changes = request.model_dump(exclude_unset=True, exclude_none=True)
    if "name" in changes:
        device.name = changes["name"]
    if "status" in changes:
        device.status = DeviceStatus(changes["status"]).value
    if "data" in changes:
        # Merge into a new dict so the JSON column is flagged dirty
        device.data = {**(device.data or {}), **changes["data"]}
    await db.commit()

    payload = _payload(device)
    await broadcaster.publish(db, device.house_id, EventType.DEVICE_UPDATE, "updated", payload)
    return payload


@router.patch("/{device_id}", response_model=DeviceResponse)
async def update_device(
    device_id: str,
    request: DeviceUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
):
    device = await _load(db, device_id, user)
    return await _apply_update(db, broadcaster, device, request)


@router.patch("/{device_id}/status", response_model=DeviceResponse)
async def update_device_status(
    device_id: str,
    request: DeviceStatusUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
):
    """Turn a device on or off."""
    device = await _load(db, device_id, user)
    return await _apply_update(db, broadcaster, device, request)


@router.delete("/{device_id}")
async def delete_device(
    device_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
):
    device = await _load(db, device_id, user)
    house_id = device.house_id
    await db.delete(device)
    await db.commit()

    await broadcaster.publish(db, house_id, EventType.DEVICE_UPDATE, "deleted", {"id": device_id})
    return {"status": "deleted", "id": device_id}
