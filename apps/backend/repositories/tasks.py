from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import delete
from sqlmodel import select

from exceptions import NotFoundError, ValidationError
from models import Comment, Project, Task
from repositories.base import Repository
from schemas import TaskCreate, TaskUpdate
from services.access import can_access, filter_accessible

DONE_STATUS = "Done"
REOPENED_STATUS = "In Progress"


def apply_done_rule(fields: dict, current_status: Optional[str]) -> dict:
    """
    Keep ``done`` and ``status`` in agreement for a partial write.

    ``status`` always wins when present. A lone ``done`` moves the status
    to Done, or back to In Progress when a Done task is reopened.
    """
    if "status" in fields:
        fields["done"] = fields["status"] == DONE_STATUS
    elif "done" in fields:
        if fields["done"]:
            fields["status"] = DONE_STATUS
        elif current_status == DONE_STATUS:
            fields["status"] = REOPENED_STATUS
    return fields


class TaskRepository(Repository):
    async def list(self, caller_id: int, project_id: Optional[int] = None) -> List[Task]:
        query = select(Task)
        if project_id is not None:
            query = query.where(Task.project_id == project_id)
        result = await self.session.exec(query.order_by(Task.created_at.desc(), Task.id.desc()))
        return filter_accessible(result.all(), caller_id)

    async def get_by_id(self, task_id: int, caller_id: int) -> Task:
        task = await self.session.get(Task, task_id)
        if not task or not can_access(task, caller_id):
            raise NotFoundError("Task not found")
        return task

    async def create(self, data: TaskCreate, caller_id: int) -> Task:
        if not data.feature_task or not data.feature_task.strip():
            raise ValidationError("Task name is required")
        if data.project_id is None:
            raise ValidationError("Project ID is required")

        project = await self.session.get(Project, data.project_id)
        if not project or not can_access(project, caller_id):
            raise NotFoundError("Project not found")

        status = data.status or "Backlog"
        task = Task(
            project_id=project.id,
            user_id=caller_id,
            feature_task=data.feature_task.strip(),
            description=data.description,
            assigned_to=(data.assigned_to or "").strip() or None,
            priority=data.priority or "Medium",
            status=status,
            done=status == DONE_STATUS,
            start_date=data.start_date,
            target_date=data.target_date,
            notes=data.notes,
            visibility=data.visibility or "private",
            shared_with=data.shared_with or [],
            billed=bool(data.billed),
            billed_date=data.billed_date,
        )
        return await self.save(task, "Failed to create task")

    async def update(self, task_id: int, data: TaskUpdate, caller_id: int) -> Tuple[Task, Optional[str]]:
        """
        Partial update. Returns the task and its assignee before the write.

        Any authenticated caller may update a task.
        """
        task = await self.session.get(Task, task_id)
        if not task:
            raise NotFoundError("Task not found")

        previous_assignee = task.assigned_to
        fields = apply_done_rule(data.to_row_fields(), task.status)

        if "feature_task" in fields:
            if not fields["feature_task"] or not fields["feature_task"].strip():
                raise ValidationError("Task name is required")
            fields["feature_task"] = fields["feature_task"].strip()
        if "assigned_to" in fields:
            fields["assigned_to"] = (fields["assigned_to"] or "").strip() or None

        for key, value in fields.items():
            setattr(task, key, value)
        task.updated_at = datetime.utcnow()
        task = await self.save(task, "Failed to update task")
        return task, previous_assignee

    async def delete(self, task_id: int, caller_id: int) -> None:
        task = await self.session.get(Task, task_id)
        if not task:
            raise NotFoundError("Task not found")

        await self.session.execute(
            delete(Comment)
            .where(Comment.task_id == task.id)
            .execution_options(synchronize_session="fetch")
        )
        await self.session.delete(task)
        await self.commit("Failed to delete task")
