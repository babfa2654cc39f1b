from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON, Enum as SQLEnum
from sqlalchemy.orm import relationship
from gatepass.db.base import BaseModel
from gatepass.models.shared.enums import GatePassAction, GatePassStatus

class GatePassEvent(BaseModel):
    """Append-only audit row, one per successful gate pass transition"""
    __tablename__ = 'gate_pass_events'

    gate_pass_id = Column(String(36), ForeignKey('gate_passes.id'), nullable=False, index=True)
    action = Column(SQLEnum(GatePassAction), nullable=False)
    actor_id = Column(Integer, ForeignKey('users.id'), nullable=True)
    from_status = Column(SQLEnum(GatePassStatus), nullable=True)
    to_status = Column(SQLEnum(GatePassStatus), nullable=False)
    occurred_at = Column(DateTime(timezone=True), nullable=False)
    details = Column(JSON, nullable=True)

    # Relationships
    gate_pass = relationship("GatePass", back_populates="events")
