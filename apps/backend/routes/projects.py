"""Project routes - CRUD with visibility checks."""
from typing import List

from fastapi import APIRouter, Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from database import get_session
from dependencies import require_user
from models import Profile
from observability.metrics import business_events_total
from repositories import ProjectRepository
from schemas import ProjectCreate, ProjectRead, ProjectUpdate

router = APIRouter(prefix="/api/projects", tags=["projects"])


@router.get("", response_model=List[ProjectRead])
async def list_projects(
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    projects = await ProjectRepository(session).list(profile.id)
    return [ProjectRead.model_validate(p) for p in projects]


@router.post("", response_model=ProjectRead, status_code=201)
async def create_project(
    project_in: ProjectCreate,
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    project = await ProjectRepository(session).create(project_in, profile.id)
    business_events_total.labels(event_type="project_created").inc()
    return ProjectRead.model_validate(project)


@router.get("/{project_id}", response_model=ProjectRead)
async def get_project(
    project_id: int,
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    project = await ProjectRepository(session).get_by_id(project_id, profile.id)
    return ProjectRead.model_validate(project)


@router.put("/{project_id}", response_model=ProjectRead)
async def update_project(
    project_id: int,
    project_in: ProjectUpdate,
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    """Owner only; anyone else gets 404."""
    project = await ProjectRepository(session).update(project_id, project_in, profile.id)
    return ProjectRead.model_validate(project)


@router.delete("/{project_id}")
async def delete_project(
    project_id: int,
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    """Owner only. Removes the project's tasks and their comments too."""
    await ProjectRepository(session).delete(project_id, profile.id)
    return {"success": True}
