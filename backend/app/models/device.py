"""
Device model - a simulated smart-home entity attached to a house.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import JSON, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class DeviceType(str, Enum):
    """Types of devices."""
    THERMOSTAT = "thermostat"
    LIGHT = "light"
    TV = "tv"
    SPEAKER = "speaker"


class DeviceStatus(str, Enum):
    """Device power status."""
    ACTIVE = "active"
    INACTIVE = "inactive"


class Device(Base):
    """Smart-home device model."""

    __tablename__ = "devices"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4())
    )
    house_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("houses.id", ondelete="CASCADE"),
        index=True
    )

    name: Mapped[str] = mapped_column(String(255))
    type: Mapped[str] = mapped_column(String(50), index=True)
    status: Mapped[str] = mapped_column(
        String(20),
        default=DeviceStatus.INACTIVE.value
    )
    data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )

    def __repr__(self) -> str:
        return f"<Device {self.name} ({self.type})>"
