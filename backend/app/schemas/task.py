"""
Task schemas.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.models.task import TaskPriority, TaskStatus


class TaskCreate(BaseModel):
    """Schema for creating a task."""
    house_id: str
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    assigned_to_id: Optional[str] = None
    due_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    effort_hours: int = Field(default=0, ge=0)
    effort_minutes: int = Field(default=0, ge=0, le=59)


class TaskUpdate(BaseModel):
    """Partial task update. Only fields that are sent are applied."""
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    priority: Optional[TaskPriority] = None
    status: Optional[TaskStatus] = None
    assigned_to_id: Optional[str] = None
    due_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    effort_hours: Optional[int] = Field(default=None, ge=0)
    effort_minutes: Optional[int] = Field(default=None, ge=0, le=59)


class TaskAssign(BaseModel):
    """Set or clear a task's assignee."""
    assigned_to_id: Optional[str] = None


class TaskResponse(BaseModel):
    """Schema for task response."""
    id: str
    house_id: str
    title: str
    description: Optional[str] = None
    priority: str
    status: str
    assigned_to_id: Optional[str] = None
    due_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    effort_hours: int
    effort_minutes: int
    created_by_id: str
    completed_by_id: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class TaskListResponse(BaseModel):
    tasks: List[TaskResponse]
    total: int
