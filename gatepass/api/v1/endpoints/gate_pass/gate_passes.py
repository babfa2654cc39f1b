from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from gatepass.api.dependencies import get_clock, get_current_user, get_gate_pass_service, get_query_service
from gatepass.core.database import get_async_session
from gatepass.models.auth.user import User
from gatepass.models.shared.enums import GatePassStatus
from gatepass.schemas.common.pagination import PaginatedResponse
from gatepass.schemas.dashboard.dashboard_schema import DashboardResponse
from gatepass.schemas.gate_pass.gate_pass_schema import (
    DepartmentEmployee, GatePassApprove, GatePassCreate, GatePassReject, GatePassResponse,
)
from gatepass.services.dashboard.dashboard_service import DashboardService
from gatepass.services.gate_pass.approval_router import ensure_acting_as
from gatepass.services.gate_pass.gate_pass_service import GatePassService
from gatepass.services.gate_pass.projection import build_pass_response
from gatepass.services.gate_pass.query_service import GatePassQueryService
from gatepass.utils.date_time import Clock

router = APIRouter()

# region ========== Submission ==========

@router.post("/", response_model=GatePassResponse, status_code=201)
async def submit_gate_pass(
    gate_pass: GatePassCreate,
    service: GatePassService = Depends(get_gate_pass_service),
    current_user: User = Depends(get_current_user),
):
    """Request a gate pass for the authenticated user"""
    ensure_acting_as(current_user, gate_pass.user_id)
    created = await service.submit(
        current_user.id,
        gate_pass.reason,
        gate_pass.destination,
        duration_minutes=gate_pass.duration_minutes,
        expected_return=gate_pass.expected_return,
    )
    return build_pass_response(created, service.clock())

# endregion

# region ========== Listings ==========

@router.get("/", response_model=PaginatedResponse[GatePassResponse])
async def get_all_gate_passes(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[GatePassStatus] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    service: GatePassQueryService = Depends(get_query_service),
    current_user: User = Depends(get_current_user),
):
    """All gate passes (admin only)"""
    return await service.get_all(current_user, page, limit, status, start_date, end_date)


@router.get("/today", response_model=PaginatedResponse[GatePassResponse])
async def get_today_gate_passes(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[GatePassStatus] = Query(None),
    service: GatePassQueryService = Depends(get_query_service),
    current_user: User = Depends(get_current_user),
):
    """Gate passes requested today in the organization's timezone"""
    return await service.get_today(current_user, page, limit, status)


@router.get("/pending/{approver_id}", response_model=PaginatedResponse[GatePassResponse])
async def get_pending_approvals(
    approver_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    service: GatePassQueryService = Depends(get_query_service),
    current_user: User = Depends(get_current_user),
):
    """Pending passes awaiting this approver, oldest first"""
    return await service.get_pending_approvals(current_user, approver_id, page, limit)


@router.get("/user/{user_id}", response_model=PaginatedResponse[GatePassResponse])
async def get_user_gate_passes(
    user_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[GatePassStatus] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    service: GatePassQueryService = Depends(get_query_service),
    current_user: User = Depends(get_current_user),
):
    """Gate pass history of one user"""
    return await service.get_user_history(current_user, user_id, page, limit, status, start_date, end_date)


@router.get("/department/{hod_id}/employees", response_model=List[DepartmentEmployee])
async def get_department_employees(
    hod_id: int,
    service: GatePassQueryService = Depends(get_query_service),
    current_user: User = Depends(get_current_user),
):
    """Employees supervised by a department head"""
    return await service.get_department_employees(current_user, hod_id)


@router.get("/department/{hod_id}", response_model=PaginatedResponse[GatePassResponse])
async def get_department_gate_passes(
    hod_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[GatePassStatus] = Query(None),
    employee_id: Optional[int] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    service: GatePassQueryService = Depends(get_query_service),
    current_user: User = Depends(get_current_user),
):
    """Gate pass history of a department head's people"""
    return await service.get_department_history(
        current_user, hod_id, page, limit, status, employee_id, start_date, end_date
    )


@router.get("/ceo/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    period: int = Query(30, description="Days to cover: 7, 30, 90 or 365"),
    session: AsyncSession = Depends(get_async_session),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(get_current_user),
):
    """Organization-wide gate pass statistics"""
    return await DashboardService(session, clock=clock).get_dashboard_data(current_user, period)

# endregion

# region ========== Security desk ==========

@router.get("/payroll/{payroll_no}", response_model=GatePassResponse)
async def get_active_pass_by_payroll(
    payroll_no: str,
    service: GatePassService = Depends(get_gate_pass_service),
    current_user: User = Depends(get_current_user),
):
    """Approved or checked-out pass for a payroll number"""
    gate_pass = await service.find_active_pass_by_payroll(payroll_no, current_user.id)
    return build_pass_response(gate_pass, service.clock())


@router.post("/{pass_id}/checkout", response_model=GatePassResponse)
async def check_out(
    pass_id: str,
    service: GatePassService = Depends(get_gate_pass_service),
    current_user: User = Depends(get_current_user),
):
    """Record the employee leaving through the gate"""
    gate_pass = await service.check_out(pass_id, current_user.id)
    return build_pass_response(gate_pass, service.clock())


@router.post("/{pass_id}/checkin", response_model=GatePassResponse)
async def check_in(
    pass_id: str,
    service: GatePassService = Depends(get_gate_pass_service),
    current_user: User = Depends(get_current_user),
):
    """Record the employee returning through the gate"""
    gate_pass = await service.check_in(pass_id, current_user.id)
    return build_pass_response(gate_pass, service.clock())

# endregion

# region ========== Decisions ==========

@router.post("/{pass_id}/approve", response_model=GatePassResponse)
async def approve_gate_pass(
    pass_id: str,
    data: Optional[GatePassApprove] = None,
    service: GatePassService = Depends(get_gate_pass_service),
    current_user: User = Depends(get_current_user),
):
    """Approve a pending pass, optionally adjusting its duration"""
    data = data or GatePassApprove()
    ensure_acting_as(current_user, data.approver_id, label="approver")
    gate_pass = await service.approve(pass_id, current_user.id, data.adjusted_duration_minutes)
    return build_pass_response(gate_pass, service.clock())


@router.post("/{pass_id}/reject", response_model=GatePassResponse)
async def reject_gate_pass(
    pass_id: str,
    data: Optional[GatePassReject] = None,
    service: GatePassService = Depends(get_gate_pass_service),
    current_user: User = Depends(get_current_user),
):
    """Reject a pending pass"""
    data = data or GatePassReject()
    ensure_acting_as(current_user, data.approver_id, label="approver")
    gate_pass = await service.reject(pass_id, current_user.id)
    return build_pass_response(gate_pass, service.clock())

# endregion

# region ========== Single pass ==========

@router.get("/{pass_id}/print", response_class=HTMLResponse)
async def print_gate_pass(
    pass_id: str,
    service: GatePassQueryService = Depends(get_query_service),
    current_user: User = Depends(get_current_user),
):
    """Printable HTML gate pass"""
    return HTMLResponse(await service.render_pass_for_viewer(current_user, pass_id))


@router.get("/{pass_id}", response_model=GatePassResponse)
async def get_gate_pass(
    pass_id: str,
    service: GatePassQueryService = Depends(get_query_service),
    current_user: User = Depends(get_current_user),
):
    """Get gate pass by ID"""
    return await service.get_pass_for_viewer(current_user, pass_id)

# endregion
