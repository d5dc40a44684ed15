"""Per-project task statistics for the dashboard."""
from typing import Dict, Iterable

from fastapi import APIRouter, Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from database import get_session
from dependencies import require_user
from models import Profile, Project, Task
from repositories import ProjectRepository, TaskRepository
from schemas import ProjectStats

router = APIRouter(prefix="/api/stats", tags=["stats"])


def compute_project_stats(projects: Iterable[Project], tasks: Iterable[Task]) -> Dict[int, ProjectStats]:
    counts: Dict[int, Dict[str, int]] = {
        p.id: {"total": 0, "completed": 0, "in_progress": 0, "backlog": 0} for p in projects
    }
    for task in tasks:
        bucket = counts.get(task.project_id)
        if bucket is None:
            continue
        bucket["total"] += 1
        if task.done:
            bucket["completed"] += 1
        elif task.status == "In Progress":
            bucket["in_progress"] += 1
        elif task.status == "Backlog":
            bucket["backlog"] += 1

    return {
        project_id: ProjectStats(
            **c,
            percent_complete=round(c["completed"] * 100 / c["total"]) if c["total"] else 0,
        )
        for project_id, c in counts.items()
    }


@router.get("")
async def get_stats(
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    projects = await ProjectRepository(session).list(profile.id)
    tasks = await TaskRepository(session).list(profile.id)
    stats = compute_project_stats(projects, tasks)
    return {str(pid): s.model_dump(by_alias=True) for pid, s in stats.items()}
