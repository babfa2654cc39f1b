from sqlalchemy import Column, Integer, String, Boolean, Text, ForeignKey
from sqlalchemy.orm import relationship
from gatepass.db.base import BaseModel

class Department(BaseModel):
    __tablename__ = 'departments'

    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text)
    head_user_id = Column(
        Integer,
        ForeignKey('users.id', use_alter=True, name='fk_departments_head_user_id'),
        nullable=True,
    )
    parent_department_id = Column(Integer, ForeignKey('departments.id'), nullable=True)
    is_active = Column(Boolean, default=True)

    # Relationships
    members = relationship("User", foreign_keys="User.department_id", back_populates="department")
    head = relationship("User", foreign_keys=[head_user_id])
    parent = relationship("Department", remote_side="Department.id")
