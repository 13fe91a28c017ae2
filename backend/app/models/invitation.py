"""
House invitation model.

Lifecycle:
    pending --accept--> accepted
    pending --expire--> expired
    pending --revoke/decline--> (row deleted)

Nothing leaves ``accepted`` or ``expired``.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.clock import as_utc
from app.core.database import Base
from app.models.house import MemberRole


class InvitationStatus(str, Enum):
    """Invitation lifecycle status."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"


class Invitation(Base):
    """Time-boxed, single-use offer for an email to join a house."""

    __tablename__ = "house_invitations"

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
    email: Mapped[str] = mapped_column(String(255), index=True)
    role: Mapped[str] = mapped_column(
        String(20),
        default=MemberRole.MEMBER.value
    )
    invited_by_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE")
    )
    token: Mapped[str] = mapped_column(String(128), unique=True, index=True)
    status: Mapped[str] = mapped_column(
        String(20),
        default=InvitationStatus.PENDING.value,
        index=True
    )

    # Timestamps (UTC)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )

    def is_past_expiry(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return as_utc(self.expires_at) < now

    @property
    def is_pending(self) -> bool:
        return self.status == InvitationStatus.PENDING.value

    def __repr__(self) -> str:
        return f"<Invitation {self.email} house={self.house_id} ({self.status})>"
