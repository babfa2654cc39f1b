import logging
from collections import defaultdict
from datetime import timedelta
from typing import Dict, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gatepass.core.exceptions import ValidationError
from gatepass.models.auth.user import User
from gatepass.models.gate_pass.gate_pass import GatePass
from gatepass.models.shared.enums import GatePassStatus
from gatepass.schemas.dashboard.dashboard_schema import (
    ApproverPendingStats, DashboardOverview, DashboardResponse,
    DepartmentStats, FrequentUser, OverdueEmployee,
)
from gatepass.services.gate_pass import approval_router, duration
from gatepass.services.gate_pass.approval_router import OrgDirectory
from gatepass.services.gate_pass.state_machine import FINALIZED_STATES
from gatepass.utils.date_time import Clock, ensure_utc, utcnow

logger = logging.getLogger(__name__)

ALLOWED_PERIODS = (7, 30, 90, 365)
FREQUENT_USERS_LIMIT = 10
UNASSIGNED_DEPARTMENT = "Unassigned"


def _percentage(part: int, whole: int) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


def _average_hours(passes: List[GatePass]) -> float:
    durations = [gp.total_duration_minutes for gp in passes if gp.total_duration_minutes is not None]
    if not durations:
        return 0.0
    return round(sum(durations) / len(durations) / 60, 2)


class DashboardService:
    def __init__(self, session: AsyncSession, clock: Clock = utcnow):
        self.session = session
        self.clock = clock

    async def get_dashboard_data(self, viewer: User, period: int = 30) -> DashboardResponse:
        """Organization-wide gate pass statistics for the last ``period`` days"""
        approval_router.ensure_can_view_dashboard(viewer)
        if period not in ALLOWED_PERIODS:
            raise ValidationError(f"period must be one of {', '.join(str(p) for p in ALLOWED_PERIODS)}")

        try:
            now = self.clock()
            since = now - timedelta(days=period)
            directory = await approval_router.load_directory(self.session)

            result = await self.session.execute(
                select(GatePass).where(GatePass.is_deleted == False, GatePass.request_time >= since)
            )
            passes = result.scalars().all()

            pending_result = await self.session.execute(
                select(GatePass).where(
                    GatePass.is_deleted == False, GatePass.status == GatePassStatus.PENDING
                )
            )
            pending = pending_result.scalars().all()

            return DashboardResponse(
                overview=self._overview(passes, now),
                overdue_employees=self._overdue_employees(passes, directory, now),
                frequent_users=self._frequent_users(passes, directory, now),
                department_stats=self._department_stats(passes, directory, now),
                hod_pending_stats=self._approver_pending_stats(pending, directory, now),
                period=f"{period} days",
            )

        except Exception as e:
            logger.error(f"Error getting dashboard data: {str(e)}")
            raise

    def _overview(self, passes: List[GatePass], now) -> DashboardOverview:
        approved = [gp for gp in passes if gp.status in FINALIZED_STATES]
        rejected = [gp for gp in passes if gp.status == GatePassStatus.REJECTED]
        overdue = [gp for gp in passes if duration.was_ever_overdue(gp, now)]

        return DashboardOverview(
            total_passes=len(passes),
            pending_passes=sum(1 for gp in passes if gp.status == GatePassStatus.PENDING),
            approved_passes=len(approved),
            rejected_passes=len(rejected),
            currently_out=sum(1 for gp in passes if gp.status == GatePassStatus.CHECKED_OUT),
            overdue_passes=len(overdue),
            avg_duration_hours=_average_hours(passes),
            approval_rate=_percentage(len(approved), len(approved) + len(rejected)),
            overdue_rate=_percentage(len(overdue), len(approved)),
        )

    def _department_name(self, user: User, directory: OrgDirectory):
        department = directory.departments.get(user.department_id) if user else None
        return department.name if department else None

    def _overdue_employees(self, passes, directory: OrgDirectory, now) -> List[OverdueEmployee]:
        rows = []
        for gp in passes:
            if not duration.is_overdue(gp, now):
                continue
            user = directory.users.get(gp.user_id)
            overdue_for = ensure_utc(now) - ensure_utc(gp.expected_return)
            rows.append(OverdueEmployee(
                gate_pass_id=gp.id,
                name=user.name if user else "",
                payroll_no=user.payroll_no if user else "",
                department_name=self._department_name(user, directory),
                reason=gp.reason,
                destination=gp.destination,
                hours_overdue=round(overdue_for.total_seconds() / 3600, 2),
                days_overdue=overdue_for.days,
            ))
        rows.sort(key=lambda r: r.hours_overdue, reverse=True)
        return rows

    def _frequent_users(self, passes, directory: OrgDirectory, now) -> List[FrequentUser]:
        by_user: Dict[int, List[GatePass]] = defaultdict(list)
        for gp in passes:
            by_user[gp.user_id].append(gp)

        ranked = sorted(by_user.items(), key=lambda item: (-len(item[1]), item[0]))[:FREQUENT_USERS_LIMIT]
        rows = []
        for user_id, user_passes in ranked:
            user = directory.users.get(user_id)
            overdue_count = sum(1 for gp in user_passes if duration.was_ever_overdue(gp, now))
            rows.append(FrequentUser(
                user_id=user_id,
                name=user.name if user else "",
                payroll_no=user.payroll_no if user else "",
                department_name=self._department_name(user, directory),
                total_passes=len(user_passes),
                overdue_count=overdue_count,
                avg_duration_hours=_average_hours(user_passes),
                overdue_percentage=_percentage(overdue_count, len(user_passes)),
            ))
        return rows

    def _department_stats(self, passes, directory: OrgDirectory, now) -> List[DepartmentStats]:
        by_department: Dict[object, List[GatePass]] = defaultdict(list)
        for gp in passes:
            user = directory.users.get(gp.user_id)
            by_department[user.department_id if user else None].append(gp)

        rows = []
        for department_id, dept_passes in by_department.items():
            department = directory.departments.get(department_id)
            overdue = sum(1 for gp in dept_passes if duration.was_ever_overdue(gp, now))
            unique_users = len({gp.user_id for gp in dept_passes})
            rows.append(DepartmentStats(
                department_id=department_id,
                department_name=department.name if department else UNASSIGNED_DEPARTMENT,
                total_passes=len(dept_passes),
                pending_passes=sum(1 for gp in dept_passes if gp.status == GatePassStatus.PENDING),
                overdue_passes=overdue,
                avg_duration_hours=_average_hours(dept_passes),
                unique_users=unique_users,
                overdue_rate=_percentage(overdue, len(dept_passes)),
                passes_per_user=round(len(dept_passes) / unique_users, 2) if unique_users else 0.0,
            ))
        rows.sort(key=lambda r: r.total_passes, reverse=True)
        return rows

    def _approver_pending_stats(self, pending, directory: OrgDirectory, now) -> List[ApproverPendingStats]:
        """Pending load per resolved approver; ADMIN override is not counted"""
        counts: Dict[int, int] = defaultdict(int)
        oldest: Dict[int, object] = {}
        for gp in pending:
            requester = directory.users.get(gp.user_id)
            if requester is None:
                continue
            for approver_id in approval_router.resolve_approver_ids(requester, directory):
                counts[approver_id] += 1
                requested = ensure_utc(gp.request_time)
                if approver_id not in oldest or requested < oldest[approver_id]:
                    oldest[approver_id] = requested

        rows = []
        for approver_id, count in counts.items():
            approver = directory.users.get(approver_id)
            if approver is None:
                continue
            rows.append(ApproverPendingStats(
                hod_id=approver.id,
                hod_name=approver.name,
                hod_payroll_no=approver.payroll_no,
                department_name=self._department_name(approver, directory),
                pending_count=count,
                days_pending=(ensure_utc(now) - oldest[approver_id]).days,
            ))
        rows.sort(key=lambda r: (-r.pending_count, r.hod_name))
        return rows
