from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from gatepass.db.base import BaseModel
from gatepass.models.shared.enums import UserRole

class User(BaseModel):
    __tablename__ = "users"

    name = Column(String(255), nullable=False)
    payroll_no = Column(String(50), unique=True, index=True, nullable=False)
    email = Column(String(255), nullable=True)
    hashed_password = Column(String(255), nullable=False)
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.STAFF, index=True)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=True, index=True)
    reports_to_user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    is_active = Column(Boolean, default=True)
    must_change_password = Column(Boolean, default=False)
    last_login = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    department = relationship("Department", foreign_keys=[department_id], back_populates="members")
    reports_to = relationship("User", remote_side="User.id", foreign_keys=[reports_to_user_id])

    def __repr__(self):
        return f"<User {self.payroll_no} ({self.role})>"
