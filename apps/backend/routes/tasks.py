"""Task routes - CRUD plus assignment notifications."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel.ext.asyncio.session import AsyncSession

from database import get_session
from dependencies import require_user
from models import Profile
from observability.logging import get_logger
from observability.metrics import business_events_total
from repositories import TaskRepository
from schemas import TaskCreate, TaskRead, TaskUpdate
from services.notify import schedule_task_assignment
from services.side_effects import SideEffects, get_side_effects

logger = get_logger(__name__)

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


@router.get("", response_model=List[TaskRead])
async def list_tasks(
    project_id: Optional[int] = Query(None, alias="projectId"),
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    tasks = await TaskRepository(session).list(profile.id, project_id=project_id)
    return [TaskRead.model_validate(t) for t in tasks]


@router.post("", response_model=TaskRead, status_code=201)
async def create_task(
    task_in: TaskCreate,
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
    effects: SideEffects = Depends(get_side_effects),
):
    caller_id = profile.id
    task = await TaskRepository(session).create(task_in, caller_id)
    response = TaskRead.model_validate(task)
    business_events_total.labels(event_type="task_created").inc()

    if response.assigned_to:
        schedule_task_assignment(effects, response.id, caller_id)
    return response


@router.get("/{task_id}", response_model=TaskRead)
async def get_task(
    task_id: int,
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    task = await TaskRepository(session).get_by_id(task_id, profile.id)
    return TaskRead.model_validate(task)


@router.put("/{task_id}", response_model=TaskRead)
async def update_task(
    task_id: int,
    task_in: TaskUpdate,
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
    effects: SideEffects = Depends(get_side_effects),
):
    caller_id = profile.id
    task, previous_assignee = await TaskRepository(session).update(task_id, task_in, caller_id)
    response = TaskRead.model_validate(task)

    if response.assigned_to and response.assigned_to != previous_assignee:
        schedule_task_assignment(
            effects, response.id, caller_id,
            previous_assignee=previous_assignee, reassigned=True,
        )
    return response


@router.delete("/{task_id}")
async def delete_task(
    task_id: int,
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    await TaskRepository(session).delete(task_id, profile.id)
    return {"success": True}
