"""Comment routes - list/add/delete comments on tasks."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel.ext.asyncio.session import AsyncSession

from database import get_session
from dependencies import require_user
from models import Profile
from observability.metrics import business_events_total
from repositories import CommentRepository
from schemas import CommentCreate, CommentRead
from services.notify import schedule_comment_added
from services.side_effects import SideEffects, get_side_effects

router = APIRouter(prefix="/api/comments", tags=["comments"])


@router.get("", response_model=List[CommentRead])
async def list_comments(
    task_id: Optional[int] = Query(None, alias="taskId"),
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    comments = await CommentRepository(session).list_for_task(task_id)
    return [CommentRead.model_validate(c) for c in comments]


@router.post("", response_model=CommentRead, status_code=201)
async def create_comment(
    comment_in: CommentCreate,
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
    effects: SideEffects = Depends(get_side_effects),
):
    caller_id = profile.id
    comment = await CommentRepository(session).create(comment_in, caller_id)
    response = CommentRead.model_validate(comment)
    business_events_total.labels(event_type="comment_created").inc()

    schedule_comment_added(effects, response.id, caller_id)
    return response


@router.delete("/{comment_id}")
async def delete_comment(
    comment_id: int,
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    await CommentRepository(session).delete(comment_id)
    return {"success": True}
