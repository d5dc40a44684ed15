"""Notifications routes - in-app notification inbox for the current user."""
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlmodel.ext.asyncio.session import AsyncSession

from database import get_session
from dependencies import require_user
from models import Profile
from repositories import NotificationRepository
from schemas import NotificationRead

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("", response_model=List[NotificationRead])
async def list_notifications(
    unread_only: bool = Query(False, alias="unreadOnly"),
    limit: int = Query(50, ge=1, le=200),
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    rows = await NotificationRepository(session).list_for_user(profile.id, unread_only=unread_only, limit=limit)
    return [NotificationRead.from_row(r) for r in rows]


@router.get("/count")
async def unread_count(
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    return {"unread": await NotificationRepository(session).unread_count(profile.id)}


@router.post("/read-all")
async def mark_all_read(
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    await NotificationRepository(session).mark_all_read(profile.id)
    return {"success": True}


@router.post("/{notification_id}/read", response_model=NotificationRead)
async def mark_read(
    notification_id: int,
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    row = await NotificationRepository(session).mark_read(notification_id, profile.id)
    return NotificationRead.from_row(row)


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: int,
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    await NotificationRepository(session).delete(notification_id, profile.id)
    return {"success": True}
