from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from gatepass.models.shared.enums import UserRole

class UserBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[str] = None
    role: UserRole = UserRole.STAFF
    department_id: Optional[int] = None
    reports_to_user_id: Optional[int] = None

class UserCreate(UserBase):
    payroll_no: str = Field(..., min_length=1, max_length=50)
    temporary_password: Optional[str] = Field(None, min_length=6)

class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[str] = None
    role: Optional[UserRole] = None
    department_id: Optional[int] = None
    reports_to_user_id: Optional[int] = None
    is_active: Optional[bool] = None
    # Present only so attempts to change it are rejected explicitly
    payroll_no: Optional[str] = None

class UserResponse(UserBase):
    id: int
    payroll_no: str
    is_active: bool
    must_change_password: bool = False
    department_name: Optional[str] = None
    reports_to_name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class CreateUserResponse(BaseModel):
    user: UserResponse
    temporary_password: str

class ResetPasswordRequest(BaseModel):
    temporary_password: Optional[str] = Field(None, min_length=6)

class ResetPasswordResponse(BaseModel):
    message: str
    temporary_password: str
