from uuid import uuid4
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from gatepass.db.base import BaseModel
from gatepass.models.shared.enums import GatePassStatus

def generate_pass_id() -> str:
    return str(uuid4())

class GatePass(BaseModel):
    __tablename__ = 'gate_passes'

    id = Column(String(36), primary_key=True, default=generate_pass_id)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    approver_id = Column(Integer, ForeignKey('users.id'), nullable=True, index=True)  # formerly hod_id
    reason = Column(Text, nullable=False)
    destination = Column(String(255), nullable=False)
    status = Column(SQLEnum(GatePassStatus), nullable=False, default=GatePassStatus.PENDING, index=True)

    request_time = Column(DateTime(timezone=True), nullable=False, index=True)
    expected_return = Column(DateTime(timezone=True), nullable=False)
    approval_time = Column(DateTime(timezone=True))
    rejection_time = Column(DateTime(timezone=True))
    out_time = Column(DateTime(timezone=True))
    in_time = Column(DateTime(timezone=True))
    total_duration_minutes = Column(Integer)

    # Bumped on every transition; transitions compare-and-set on (status, version)
    version = Column(Integer, nullable=False, default=1)

    # Relationships
    user = relationship("User", foreign_keys=[user_id])
    approver = relationship("User", foreign_keys=[approver_id])
    events = relationship("GatePassEvent", back_populates="gate_pass", order_by="GatePassEvent.id")

    def __repr__(self):
        return f"<GatePass {self.id} {self.status}>"
