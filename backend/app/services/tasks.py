"""
Task lifecycle rules.

- A task created with an assignee starts as ``assigned``
- Giving a ``created`` task an assignee moves it to ``assigned``
- Clearing the assignee of an open task returns it to ``created``
- Completing records who completed it (assignee, else creator) and when
"""

import logging
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import utcnow
from app.core.errors import ConflictError, NotFoundError
from app.models.task import ACTIVE_ASSIGNMENT_STATUSES, Task, TaskStatus
from app.models.user import User
from app.schemas.task import TaskCreate, TaskResponse
from app.services.membership import is_member

logger = logging.getLogger(__name__)

# Fields a partial update may set back to null
CLEARABLE_FIELDS = frozenset({"assigned_to_id", "description", "due_date", "end_date"})


def task_payload(task: Task) -> Dict[str, Any]:
    return TaskResponse.model_validate(task).model_dump(mode="json")


async def get_task(db: AsyncSession, task_id: str) -> Task:
    task = await db.get(Task, task_id)
    if task is None:
        raise NotFoundError("Task")
    return task


async def _check_assignee(db: AsyncSession, house_id: str, user_id: str) -> None:
    if not await is_member(db, house_id, user_id):
        raise ConflictError("Tasks can only be assigned to members of the house")


def _apply_assignee(task: Task, assigned_to_id: Optional[str]) -> Optional[str]:
    """
    Set or clear the assignee and move the status accordingly.

    Returns the user id when the task gained a new assignee.
    """
    previous = task.assigned_to_id
    task.assigned_to_id = assigned_to_id

    if assigned_to_id is None:
        if task.status in ACTIVE_ASSIGNMENT_STATUSES:
            task.status = TaskStatus.CREATED.value
        return None

    if task.status == TaskStatus.CREATED.value:
        task.status = TaskStatus.ASSIGNED.value
    return assigned_to_id if assigned_to_id != previous else None


def _mark_completed(task: Task) -> None:
    task.status = TaskStatus.COMPLETED.value
    task.completed_by_id = task.assigned_to_id or task.created_by_id
    task.completed_at = utcnow()


async def create_task(db: AsyncSession, data: TaskCreate, creator: User) -> Task:
    if data.assigned_to_id:
        await _check_assignee(db, data.house_id, data.assigned_to_id)

    task = Task(
        house_id=data.house_id,
        title=data.title,
        description=data.description,
        priority=data.priority.value,
        status=TaskStatus.ASSIGNED.value if data.assigned_to_id else TaskStatus.CREATED.value,
        assigned_to_id=data.assigned_to_id,
        due_date=data.due_date,
        end_date=data.end_date,
        effort_hours=data.effort_hours,
        effort_minutes=data.effort_minutes,
        created_by_id=creator.id,
    )
    db.add(task)
    await db.commit()

    logger.info(f"Task '{task.title}' created in house {task.house_id} ({task.status})")
    return task


async def update_task(
    db: AsyncSession, task: Task, changes: Dict[str, Any]
) -> Tuple[Task, Optional[str]]:
    """
    Apply a partial update. ``changes`` holds only the fields the client
    sent. Returns the task and the id of a newly assigned user, if any.
    """
    changes = {
        field: value for field, value in changes.items()
        if value is not None or field in CLEARABLE_FIELDS
    }
    newly_assigned = None

    status = changes.get("status")
    assignee = changes.get("assigned_to_id", task.assigned_to_id)
    if status is not None and TaskStatus(status).value in ACTIVE_ASSIGNMENT_STATUSES and not assignee:
        raise ConflictError(f"A task without an assignee cannot be {TaskStatus(status).value}")

    if "assigned_to_id" in changes:
        assigned_to_id = changes.pop("assigned_to_id")
        if assigned_to_id:
            await _check_assignee(db, task.house_id, assigned_to_id)
        newly_assigned = _apply_assignee(task, assigned_to_id or None)

    status = changes.pop("status", None)
    for field, value in changes.items():
        if hasattr(value, "value"):
            value = value.value
        setattr(task, field, value)

    if status is not None:
        status = TaskStatus(status)
        if status == TaskStatus.COMPLETED:
            _mark_completed(task)
        else:
            task.status = status.value
            task.completed_by_id = None
            task.completed_at = None

    await db.commit()
    return task, newly_assigned


async def assign_task(
    db: AsyncSession, task: Task, assigned_to_id: Optional[str]
) -> Tuple[Task, Optional[str]]:
    if assigned_to_id:
        await _check_assignee(db, task.house_id, assigned_to_id)
    newly_assigned = _apply_assignee(task, assigned_to_id or None)
    await db.commit()
    return task, newly_assigned


async def complete_task(db: AsyncSession, task: Task) -> Task:
    _mark_completed(task)
    await db.commit()
    logger.info(f"Task '{task.title}' completed by {task.completed_by_id}")
    return task


async def delete_task(db: AsyncSession, task: Task) -> None:
    await db.delete(task)
    await db.commit()
