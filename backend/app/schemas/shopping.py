"""
Shopping list schemas.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class ShoppingItemCreate(BaseModel):
    """Schema for adding an item to the shopping list."""
    house_id: str
    name: str = Field(min_length=1, max_length=255)
    quantity: int = Field(default=1, ge=1)
    unit: Optional[str] = None
    category: Optional[str] = None
    note: Optional[str] = None


class ShoppingItemUpdate(BaseModel):
    """Partial update; toggling ``is_purchased`` records who bought it."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    quantity: Optional[int] = Field(default=None, ge=1)
    unit: Optional[str] = None
    category: Optional[str] = None
    note: Optional[str] = None
    is_purchased: Optional[bool] = None


class ShoppingItemResponse(BaseModel):
    id: str
    house_id: str
    name: str
    quantity: int
    unit: Optional[str] = None
    category: Optional[str] = None
    note: Optional[str] = None
    is_purchased: bool
    added_by_id: str
    purchased_by_id: Optional[str] = None
    purchased_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ShoppingListResponse(BaseModel):
    items: List[ShoppingItemResponse]
    total: int


class ShoppingCommitRequest(BaseModel):
    """Announce a finished round of list edits to the rest of the house."""
    house_id: str
    message: Optional[str] = Field(default=None, max_length=500)


class ShoppingCommitResponse(BaseModel):
    status: str = "committed"
    notified: int
