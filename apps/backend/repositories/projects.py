from datetime import datetime
from typing import List

from sqlalchemy import delete
from sqlmodel import select

from exceptions import NotFoundError, ValidationError
from models import Comment, Project, Task
from repositories.base import Repository
from schemas import ProjectCreate, ProjectUpdate
from services.access import can_access, can_modify_project, filter_accessible


class ProjectRepository(Repository):
    async def list(self, caller_id: int) -> List[Project]:
        result = await self.session.exec(select(Project).order_by(Project.created_at.desc(), Project.id.desc()))
        return filter_accessible(result.all(), caller_id)

    async def get_by_id(self, project_id: int, caller_id: int) -> Project:
        project = await self.session.get(Project, project_id)
        if not project or not can_access(project, caller_id):
            raise NotFoundError("Project not found")
        return project

    async def _get_owned(self, project_id: int, caller_id: int) -> Project:
        project = await self.session.get(Project, project_id)
        if not project or not can_modify_project(project, caller_id):
            raise NotFoundError("Project not found")
        return project

    async def create(self, data: ProjectCreate, caller_id: int) -> Project:
        if not data.name or not data.name.strip():
            raise ValidationError("Project name is required")

        project = Project(
            user_id=caller_id,
            name=data.name.strip(),
            visibility=data.visibility or "private",
            shared_with=data.shared_with or [],
            billed=bool(data.billed),
            billed_date=data.billed_date,
        )
        return await self.save(project, "Failed to create project")

    async def update(self, project_id: int, data: ProjectUpdate, caller_id: int) -> Project:
        project = await self._get_owned(project_id, caller_id)

        fields = data.to_row_fields()
        if "name" in fields:
            if not fields["name"] or not fields["name"].strip():
                raise ValidationError("Project name is required")
            fields["name"] = fields["name"].strip()

        for key, value in fields.items():
            setattr(project, key, value)
        project.updated_at = datetime.utcnow()
        return await self.save(project, "Failed to update project")

    async def delete(self, project_id: int, caller_id: int) -> None:
        project = await self._get_owned(project_id, caller_id)

        task_ids = select(Task.id).where(Task.project_id == project.id)
        await self.session.execute(
            delete(Comment)
            .where(Comment.task_id.in_(task_ids))
            .execution_options(synchronize_session="fetch")
        )
        await self.session.execute(
            delete(Task)
            .where(Task.project_id == project.id)
            .execution_options(synchronize_session="fetch")
        )
        await self.session.delete(project)
        await self.commit("Failed to delete project")
