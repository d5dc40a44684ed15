from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func, update
from sqlmodel import select

from exceptions import NotFoundError
from models import Notification
from observability.metrics import notifications_created_total
from repositories.base import Repository
from schemas import NotificationType


class NotificationRepository(Repository):
    async def create(
        self,
        user_id: int,
        type: NotificationType,
        title: str,
        message: str,
        link: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        """Stage a notification; the caller commits."""
        notif = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            link=link,
            meta=metadata or {},
        )
        self.session.add(notif)
        await self.session.flush()
        notifications_created_total.labels(type=type).inc()
        return notif

    async def list_for_user(self, user_id: int, unread_only: bool = False, limit: int = 50) -> List[Notification]:
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.read == False)  # noqa: E712
        query = query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
        result = await self.session.exec(query)
        return list(result.all())

    async def unread_count(self, user_id: int) -> int:
        result = await self.session.exec(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.read == False,  # noqa: E712
            )
        )
        return result.one()

    async def _get_own(self, notification_id: int, user_id: int) -> Notification:
        notif = await self.session.get(Notification, notification_id)
        if not notif or notif.user_id != user_id:
            raise NotFoundError("Notification not found")
        return notif

    async def mark_read(self, notification_id: int, user_id: int) -> Notification:
        notif = await self._get_own(notification_id, user_id)
        now = datetime.utcnow()
        notif.read = True
        notif.read_at = now
        notif.updated_at = now
        return await self.save(notif, "Failed to update notification")

    async def mark_all_read(self, user_id: int) -> None:
        now = datetime.utcnow()
        await self.session.execute(
            update(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.read == False,  # noqa: E712
            )
            .values(read=True, read_at=now, updated_at=now)
        )
        await self.commit("Failed to update notifications")

    async def delete(self, notification_id: int, user_id: int) -> None:
        notif = await self._get_own(notification_id, user_id)
        await self.session.delete(notif)
        await self.commit("Failed to delete notification")
