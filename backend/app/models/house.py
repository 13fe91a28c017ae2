"""
House model - the tenant unit that groups members, tasks, devices and the
shopping list.

Ownership Rules:
- Tasks, devices, shopping items, invitations and notifications belong to
  exactly one house
- A user may belong to multiple houses
- A house always keeps at least one owner
"""

from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, List
from uuid import uuid4

from sqlalchemy import JSON, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base

if TYPE_CHECKING:
    from app.models.user import User


class MemberRole(str, Enum):
    """House member roles."""
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


def default_permissions() -> dict[str, bool]:
    return {
        "canCreateTasks": True,
        "canAssignTasks": True,
        "canDeleteTasks": False,
        "canManageDevices": False,
        "canManageUsers": False,
    }


class House(Base):
    """House model."""

    __tablename__ = "houses"
    __table_args__ = (
        UniqueConstraint("created_by_id", "name", name="uq_houses_creator_name"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4())
    )
    name: Mapped[str] = mapped_column(String(255))
    created_by_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id"),
        index=True
    )

    # Timestamps (UTC)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    members: Mapped[List["HouseMember"]] = relationship(
        back_populates="house",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<House {self.name}>"


class HouseMember(Base):
    """Association table for users and houses with roles."""

    __tablename__ = "house_members"
    __table_args__ = (
        UniqueConstraint("house_id", "user_id", name="uq_house_members_house_user"),
    )

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
    role: Mapped[str] = mapped_column(
        String(20),
        default=MemberRole.MEMBER.value
    )
    permissions: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        default=default_permissions
    )

    # Timestamps (UTC)
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    user: Mapped["User"] = relationship(back_populates="house_memberships")
    house: Mapped["House"] = relationship(back_populates="members")

    def __repr__(self) -> str:
        return f"<HouseMember user={self.user_id} house={self.house_id} role={self.role}>"
