from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from gatepass.api.dependencies import get_current_user
from gatepass.core.database import get_async_session
from gatepass.models.auth.user import User
from gatepass.schemas.notification.notification_schema import NotificationListResponse
from gatepass.services.notification.notification_service import NotificationService

router = APIRouter()


@router.get("/", response_model=NotificationListResponse)
async def get_notifications(
    limit: int = Query(50, ge=1, le=200),
    unread_only: bool = Query(False),
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Get user's notifications"""
    notification_service = NotificationService(db)
    notifications = await notification_service.get_user_notifications(current_user.id, limit, unread_only)
    unread = await notification_service.count_unread(current_user.id)
    return {"notifications": notifications, "total": len(notifications), "unread_count": unread}


@router.post("/{notification_id}/read")
async def mark_notification_read(
    notification_id: int,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Mark notification as read"""
    await NotificationService(db).mark_notification_read(notification_id, current_user.id)
    return {"message": "Notification marked as read"}
