"""
Device schemas.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from app.models.device import DeviceStatus, DeviceType


class DeviceCreate(BaseModel):
    house_id: str
    name: str = Field(min_length=1, max_length=255)
    type: DeviceType
    status: DeviceStatus = DeviceStatus.INACTIVE
    data: Optional[Dict[str, Any]] = None


class DeviceUpdate(BaseModel):
    """Partial device update."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    status: Optional[DeviceStatus] = None
    data: Optional[Dict[str, Any]] = None


class DeviceResponse(BaseModel):
    id: str
    house_id: str
    name: str
    type: str
    status: str
    data: Optional[Dict[str, Any]] = None
    created_at: datetime

    class Config:
        from_attributes = True


class DeviceListResponse(BaseModel):
    devices: List[DeviceResponse]
    total: int
