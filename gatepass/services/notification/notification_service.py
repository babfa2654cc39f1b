import logging
from typing import Dict, Any, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, func

from gatepass.core.exceptions import NotFoundError
from gatepass.models.alerts.notification_queue import NotificationQueue
from gatepass.models.shared.enums import NotificationStatus
from gatepass.utils.date_time import utcnow
from gatepass.utils.date_time_serializer import serialize_dates

logger = logging.getLogger(__name__)

UI_NOTIFICATION = "UI_NOTIFICATION"

class NotificationService:
    """Persists in-app notifications for principals"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def notify(
        self,
        recipient_id: int,
        title: str,
        body: str,
        metadata: Optional[Dict[str, Any]] = None,
        reference_type: str = "GATE_PASS",
        reference_id: Optional[str] = None,
    ) -> Optional[NotificationQueue]:
        """Queue a notification; delivery failures are logged, never raised"""
        try:
            notification = NotificationQueue(
                notification_type=UI_NOTIFICATION,
                recipient_id=recipient_id,
                subject=title,
                message=body,
                template_data=serialize_dates(metadata or {}),
                priority=1,
                status=NotificationStatus.PENDING.value,
                reference_type=reference_type,
                reference_id=reference_id,
            )
            self.db.add(notification)
            await self.db.commit()
            await self.db.refresh(notification)
            logger.info(f"Notification queued for user {recipient_id}: {title}")
            return notification
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to queue notification for user {recipient_id}: {e}")
            return None

    async def get_user_notifications(self, user_id: int, limit: int = 50, unread_only: bool = False) -> List[dict]:
        """Get user's recent notifications"""
        conditions = [
            NotificationQueue.recipient_id == user_id,
            NotificationQueue.notification_type == UI_NOTIFICATION,
        ]
        if unread_only:
            conditions.append(NotificationQueue.status != NotificationStatus.SENT.value)

        result = await self.db.execute(
            select(NotificationQueue)
            .where(and_(*conditions))
            .order_by(NotificationQueue.id.desc())
            .limit(limit)
        )
        notifications = result.scalars().all()

        return [
            {
                "id": notif.id,
                "type": notif.reference_type,
                "title": notif.subject,
                "message": notif.message,
                "data": notif.template_data or {},
                "reference_id": notif.reference_id,
                "timestamp": notif.created_at,
                "read": notif.status == NotificationStatus.SENT.value,
            }
            for notif in notifications
        ]

    async def count_unread(self, user_id: int) -> int:
        result = await self.db.execute(
            select(func.count(NotificationQueue.id)).where(
                NotificationQueue.recipient_id == user_id,
                NotificationQueue.notification_type == UI_NOTIFICATION,
                NotificationQueue.status != NotificationStatus.SENT.value,
            )
        )
        return result.scalar() or 0

    async def mark_notification_read(self, notification_id: int, user_id: int) -> bool:
        """Mark notification as read"""
        result = await self.db.execute(
            select(NotificationQueue)
            .where(
                and_(
                    NotificationQueue.id == notification_id,
                    NotificationQueue.recipient_id == user_id
                )
            )
        )
        notification = result.scalar_one_or_none()

        if not notification:
            raise NotFoundError("Notification not found")

        notification.status = NotificationStatus.SENT.value
        notification.sent_at = utcnow()
        await self.db.commit()
        return True
