from typing import List, Optional

from sqlmodel import select

from exceptions import NotFoundError, ValidationError
from models import Comment, Task
from repositories.base import Repository
from schemas import CommentCreate


class CommentRepository(Repository):
    async def list_for_task(self, task_id: Optional[int]) -> List[Comment]:
        if task_id is None:
            raise ValidationError("Task ID is required")
        result = await self.session.exec(
            select(Comment)
            .where(Comment.task_id == task_id)
            .order_by(Comment.created_at.desc(), Comment.id.desc())
        )
        return list(result.all())

    async def create(self, data: CommentCreate, caller_id: int) -> Comment:
        if data.task_id is None or not data.content or not data.content.strip():
            raise ValidationError("Task ID and content are required")
        if not data.author or not data.author.strip():
            raise ValidationError("Author is required")

        task = await self.session.get(Task, data.task_id)
        if not task:
            raise NotFoundError("Task not found")

        comment = Comment(
            task_id=task.id,
            user_id=caller_id,
            author=data.author.strip(),
            content=data.content.strip(),
        )
        return await self.save(comment, "Failed to create comment")

    async def delete(self, comment_id: int) -> None:
        comment = await self.session.get(Comment, comment_id)
        if not comment:
            raise NotFoundError("Comment not found")
        await self.session.delete(comment)
        await self.commit("Failed to delete comment")
