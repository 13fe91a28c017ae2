"""
Task endpoints.

Every committed change is broadcast to the house as a ``task_update``
event. A member who gains an assignment from someone else gets a
``task_assigned`` notification.
"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_broadcaster, get_notifier
from app.core.database import get_db
from app.core.security import get_current_user
from app.models.notification import NotificationType
from app.models.task import Task, TaskStatus
from app.models.user import User
from app.schemas.task import TaskAssign, TaskCreate, TaskListResponse, TaskResponse, TaskUpdate
from app.services import tasks as task_service
from app.services.broadcaster import ChangeBroadcaster, EventType
from app.services.membership import require_member
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter()


async def _announce_assignment(
    notifier: NotificationService,
    task: Task,
    assignee_id: Optional[str],
    actor: User,
    background_tasks: BackgroundTasks,
) -> None:
    if not assignee_id or assignee_id == actor.id:
        return
    await notifier.notify(
        user_id=assignee_id,
        house_id=task.house_id,
        notification_type=NotificationType.TASK_ASSIGNED,
        title="New task assigned",
        message=f"{actor.public_name} assigned you \"{task.title}\"",
        data={"task_id": task.id},
        background_tasks=background_tasks,
    )


async def _load(db: AsyncSession, task_id: str, user: User) -> Task:
    task = await task_service.get_task(db, task_id)
    await require_member(db, task.house_id, user.id)
    return task


@router.get("", response_model=TaskListResponse)
async def list_tasks(
    house_id: str,
    status: Optional[TaskStatus] = None,
    assigned_to_id: Optional[str] = None,
    limit: int = Query(default=200, ge=1, le=500),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await require_member(db, house_id, user.id)

    query = select(Task).where(Task.house_id == house_id)
    if status:
        query = query.where(Task.status == status.value)
    if assigned_to_id:
        query = query.where(Task.assigned_to_id == assigned_to_id)
    query = query.order_by(Task.created_at.desc()).limit(limit)

    result = await db.execute(query)
    tasks = result.scalars().all()
    return TaskListResponse(
        tasks=[TaskResponse.model_validate(t) for t in tasks],
        total=len(tasks),
    )


@router.post("", response_model=TaskResponse, status_code=201)
async def create_task(
    request: TaskCreate,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
    notifier: NotificationService = Depends(get_notifier),
):
    await require_member(db, request.house_id, user.id)
    task = await task_service.create_task(db, request, user)
    payload = task_service.task_payload(task)

    await broadcaster.publish(db, task.house_id, EventType.TASK_UPDATE, "created", payload)
    await _announce_assignment(notifier, task, task.assigned_to_id, user, background_tasks)
    return payload


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return TaskResponse.model_validate(await _load(db, task_id, user))


@router.patch("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: str,
    request: TaskUpdate,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
    notifier: NotificationService = Depends(get_notifier),
):
    task = await _load(db, task_id, user)
    task, newly_assigned = await task_service.update_task(
        db, task, request.model_dump(exclude_unset=True)
    )
    payload = task_service.task_payload(task)

    await broadcaster.publish(db, task.house_id, EventType.TASK_UPDATE, "updated", payload)
    await _announce_assignment(notifier, task, newly_assigned, user, background_tasks)
    return payload


@router.patch("/{task_id}/assign", response_model=TaskResponse)
async def assign_task(
    task_id: str,
    request: TaskAssign,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
    notifier: NotificationService = Depends(get_notifier),
):
    """Set or clear the assignee."""
    task = await _load(db, task_id, user)
    task, newly_assigned = await task_service.assign_task(db, task, request.assigned_to_id)
    payload = task_service.task_payload(task)

    action = "assigned" if task.assigned_to_id else "unassigned"
    await broadcaster.publish(db, task.house_id, EventType.TASK_UPDATE, action, payload)
    await _announce_assignment(notifier, task, newly_assigned, user, background_tasks)
    return payload


@router.patch("/{task_id}/complete", response_model=TaskResponse)
async def complete_task(
    task_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
):
    task = await _load(db, task_id, user)
    task = await task_service.complete_task(db, task)
    payload = task_service.task_payload(task)

    await broadcaster.publish(db, task.house_id, EventType.TASK_UPDATE, "completed", payload)
    return payload


@router.delete("/{task_id}")
async def delete_task(
    task_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
):
    task = await _load(db, task_id, user)
    house_id = task.house_id
    await task_service.delete_task(db, task)

    await broadcaster.publish(db, house_id, EventType.TASK_UPDATE, "deleted", {"id": task_id})
    return {"status": "deleted", "id": task_id}
