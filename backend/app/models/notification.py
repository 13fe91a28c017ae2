"""
Notification models.

Notifications are created as side effects of task assignment, invitation
creation and shopping-list commits. Only the recipient may read or delete
them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional
from uuid import uuid4

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base

if TYPE_CHECKING:
    from app.models.user import User


class NotificationType(str, Enum):
    """Types of notifications."""
    TASK_ASSIGNED = "task_assigned"
    HOUSE_INVITATION = "house_invitation"
    SHOPPING_LIST_UPDATED = "shopping_list_updated"


class Notification(Base):
    """Notification record."""

    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4())
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True
    )
    house_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("houses.id", ondelete="CASCADE"),
        index=True
    )

    # Notification content
    type: Mapped[str] = mapped_column(String(50))
    title: Mapped[str] = mapped_column(String(255))
    message: Mapped[str] = mapped_column(Text)
    data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)

    # Read status
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, index=True)

    # Timestamps (UTC)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True
    )

    # Relationships
    user: Mapped["User"] = relationship(back_populates="notifications")

    def __repr__(self) -> str:
        return f"<Notification {self.type} for user={self.user_id[:8]}>"
