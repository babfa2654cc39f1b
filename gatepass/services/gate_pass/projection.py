from datetime import datetime
from typing import Optional

from sqlalchemy.orm import selectinload

from gatepass.models.auth.user import User
from gatepass.models.gate_pass.gate_pass import GatePass
from gatepass.schemas.gate_pass.gate_pass_schema import GatePassResponse, UserSummary
from gatepass.services.gate_pass import duration
from gatepass.utils.date_time import ensure_utc

# Relationships every gate pass projection reads; async sessions cannot lazy load
PASS_LOAD_OPTIONS = (
    selectinload(GatePass.user).selectinload(User.department),
    selectinload(GatePass.approver).selectinload(User.department),
)


def user_summary(user: Optional[User]) -> Optional[UserSummary]:
    if user is None:
        return None
    department = user.__dict__.get("department")
    return UserSummary(
        id=user.id,
        name=user.name,
        payroll_no=user.payroll_no,
        role=user.role,
        department_id=user.department_id,
        department_name=department.name if department is not None else None,
    )


def build_pass_response(gate_pass: GatePass, now: datetime) -> GatePassResponse:
    return GatePassResponse(
        id=gate_pass.id,
        user_id=gate_pass.user_id,
        approver_id=gate_pass.approver_id,
        reason=gate_pass.reason,
        destination=gate_pass.destination,
        status=gate_pass.status,
        request_time=ensure_utc(gate_pass.request_time),
        expected_return=ensure_utc(gate_pass.expected_return),
        approval_time=ensure_utc(gate_pass.approval_time),
        rejection_time=ensure_utc(gate_pass.rejection_time),
        out_time=ensure_utc(gate_pass.out_time),
        in_time=ensure_utc(gate_pass.in_time),
        total_duration_minutes=gate_pass.total_duration_minutes,
        created_at=ensure_utc(gate_pass.created_at),
        is_overdue=duration.is_overdue(gate_pass, now),
        elapsed_minutes=duration.elapsed_minutes(gate_pass, now),
        minutes_overdue=duration.minutes_overdue(gate_pass, now),
        minutes_remaining=duration.minutes_remaining(gate_pass, now),
        user=user_summary(gate_pass.__dict__.get("user")),
        approver=user_summary(gate_pass.__dict__.get("approver")),
    )
