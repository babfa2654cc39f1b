from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel

class NotificationResponse(BaseModel):
    id: int
    type: Optional[str] = None
    title: Optional[str] = None
    message: str
    data: Dict[str, Any] = {}
    reference_id: Optional[str] = None
    timestamp: Optional[datetime] = None
    read: bool = False

class NotificationListResponse(BaseModel):
    total: int
    unread_count: int
    notifications: List[NotificationResponse]
