from datetime import datetime
from typing import Optional
from pydantic import AliasChoices, BaseModel, Field

from gatepass.models.shared.enums import GatePassStatus, UserRole

class UserSummary(BaseModel):
    id: int
    name: str
    payroll_no: str
    role: UserRole
    department_id: Optional[int] = None
    department_name: Optional[str] = None

    class Config:
        from_attributes = True

class GatePassCreate(BaseModel):
    user_id: Optional[int] = None
    reason: str = ""
    destination: str = ""
    duration_minutes: Optional[int] = None
    expected_return: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("expected_return", "estimated_return_time"),
    )

class GatePassApprove(BaseModel):
    approver_id: Optional[int] = Field(default=None, validation_alias=AliasChoices("approver_id", "hod_id"))
    adjusted_duration_minutes: Optional[int] = None

class GatePassReject(BaseModel):
    approver_id: Optional[int] = Field(default=None, validation_alias=AliasChoices("approver_id", "hod_id"))

class GatePassResponse(BaseModel):
    id: str
    user_id: int
    approver_id: Optional[int] = None
    reason: str
    destination: str
    status: GatePassStatus
    request_time: datetime
    expected_return: datetime
    approval_time: Optional[datetime] = None
    rejection_time: Optional[datetime] = None
    out_time: Optional[datetime] = None
    in_time: Optional[datetime] = None
    total_duration_minutes: Optional[int] = None
    created_at: Optional[datetime] = None

    # Computed on read
    is_overdue: bool = False
    elapsed_minutes: Optional[int] = None
    minutes_overdue: int = 0
    minutes_remaining: Optional[int] = None

    user: Optional[UserSummary] = None
    approver: Optional[UserSummary] = None

class DepartmentEmployee(BaseModel):
    id: int
    name: str
    payroll_no: str
    role: UserRole
    department_id: Optional[int] = None
    department_name: Optional[str] = None
    open_pass_status: Optional[GatePassStatus] = None
