from typing import List, Optional
from pydantic import BaseModel

class DashboardOverview(BaseModel):
    total_passes: int
    pending_passes: int
    approved_passes: int
    rejected_passes: int
    currently_out: int
    overdue_passes: int
    avg_duration_hours: float
    approval_rate: float
    overdue_rate: float

class OverdueEmployee(BaseModel):
    gate_pass_id: str
    name: str
    payroll_no: str
    department_name: Optional[str] = None
    reason: str
    destination: str
    hours_overdue: float
    days_overdue: int

class FrequentUser(BaseModel):
    user_id: int
    name: str
    payroll_no: str
    department_name: Optional[str] = None
    total_passes: int
    overdue_count: int
    avg_duration_hours: float
    overdue_percentage: float

class DepartmentStats(BaseModel):
    department_id: Optional[int] = None
    department_name: str
    total_passes: int
    pending_passes: int
    overdue_passes: int
    avg_duration_hours: float
    unique_users: int
    overdue_rate: float
    passes_per_user: float

class ApproverPendingStats(BaseModel):
    hod_id: int
    hod_name: str
    hod_payroll_no: str
    department_name: Optional[str] = None
    pending_count: int
    days_pending: int

class DashboardResponse(BaseModel):
    overview: DashboardOverview
    overdue_employees: List[OverdueEmployee]
    frequent_users: List[FrequentUser]
    department_stats: List[DepartmentStats]
    hod_pending_stats: List[ApproverPendingStats]
    period: str
