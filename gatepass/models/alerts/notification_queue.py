from sqlalchemy import Column, Integer, String, DateTime, Text, JSON
from gatepass.db.base import BaseModel

class NotificationQueue(BaseModel):
    __tablename__ = 'notification_queue'

    notification_type = Column(String(50), nullable=False)  # UI_NOTIFICATION, PUSH
    recipient_id = Column(Integer, index=True)  # User ID
    subject = Column(String(500))
    message = Column(Text, nullable=False)
    template_data = Column(JSON)
    priority = Column(Integer, default=1)  # 1=High, 2=Medium, 3=Low
    status = Column(String(20), default="PENDING")  # PENDING, SENT, FAILED
    scheduled_for = Column(DateTime(timezone=True))
    sent_at = Column(DateTime(timezone=True))
    error_message = Column(Text)
    reference_type = Column(String(50))
    reference_id = Column(String(36))  # Gate pass ID
