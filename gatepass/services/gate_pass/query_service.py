import logging
from datetime import date
from typing import List, Optional, Sequence

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from gatepass.core.config import settings
from gatepass.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from gatepass.models.auth.user import User
from gatepass.models.gate_pass.gate_pass import GatePass
from gatepass.models.shared.enums import GatePassStatus
from gatepass.schemas.common.pagination import PaginatedResponse, PaginationMeta
from gatepass.schemas.gate_pass.gate_pass_schema import DepartmentEmployee, GatePassResponse
from gatepass.services.gate_pass import approval_router
from gatepass.services.gate_pass.projection import PASS_LOAD_OPTIONS, build_pass_response
from gatepass.services.gate_pass.renderer import GatePassRenderer
from gatepass.services.gate_pass.state_machine import OPEN_STATES
from gatepass.utils.date_time import Clock, local_day_bounds, local_today, utcnow

logger = logging.getLogger(__name__)


class GatePassQueryService:
    """Read-only, paginated projections of gate passes"""

    def __init__(self, session: AsyncSession, clock: Clock = utcnow):
        self.session = session
        self.clock = clock

    # region ========== Helpers ==========

    @staticmethod
    def _page_args(page: int, limit: Optional[int]):
        page = max(page or 1, 1)
        limit = limit or settings.DEFAULT_PAGE_SIZE
        return page, max(min(limit, settings.MAX_PAGE_SIZE), 1)

    @staticmethod
    def _filter_conditions(
        status: Optional[GatePassStatus] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list:
        conditions = [GatePass.is_deleted == False]
        if status:
            conditions.append(GatePass.status == status)
        if start_date and end_date and start_date > end_date:
            raise ValidationError("start_date cannot be after end_date")
        if start_date:
            conditions.append(GatePass.request_time >= local_day_bounds(start_date)[0])
        if end_date:
            conditions.append(GatePass.request_time < local_day_bounds(end_date)[1])
        return conditions

    def _project(self, passes: Sequence[GatePass]) -> List[GatePassResponse]:
        now = self.clock()
        return [build_pass_response(gp, now) for gp in passes]

    async def _paginate(
        self,
        conditions: list,
        page: int,
        limit: Optional[int],
        newest_first: bool = True,
    ) -> PaginatedResponse[GatePassResponse]:
        page, limit = self._page_args(page, limit)

        total = await self.session.scalar(
            select(func.count(GatePass.id)).where(and_(*conditions))
        ) or 0

        order = GatePass.request_time.desc() if newest_first else GatePass.request_time.asc()
        result = await self.session.execute(
            select(GatePass)
            .options(*PASS_LOAD_OPTIONS)
            .execution_options(populate_existing=True)
            .where(and_(*conditions))
            .order_by(order, GatePass.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        passes = result.scalars().all()

        return PaginatedResponse[GatePassResponse](
            data=self._project(passes),
            pagination=PaginationMeta.build(page, limit, total),
        )

    async def _get_user(self, user_id: int) -> User:
        user = await self.session.get(User, user_id)
        if user is None or user.is_deleted:
            raise NotFoundError(f"User {user_id} not found")
        return user

    # endregion

    # region ========== Histories ==========

    async def get_user_history(
        self,
        viewer: User,
        user_id: int,
        page: int = 1,
        limit: Optional[int] = None,
        status: Optional[GatePassStatus] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> PaginatedResponse[GatePassResponse]:
        subject = await self._get_user(user_id)
        directory = await approval_router.load_directory(self.session)
        approval_router.ensure_can_view_user_history(viewer, subject, directory)

        conditions = self._filter_conditions(status, start_date, end_date)
        conditions.append(GatePass.user_id == subject.id)
        return await self._paginate(conditions, page, limit)

    async def get_department_history(
        self,
        viewer: User,
        hod_id: int,
        page: int = 1,
        limit: Optional[int] = None,
        status: Optional[GatePassStatus] = None,
        employee_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> PaginatedResponse[GatePassResponse]:
        """Passes of everyone the given head supervises; executives see the whole organization"""
        hod = await self._get_user(hod_id)
        approval_router.ensure_can_view_department(viewer, hod)
        directory = await approval_router.load_directory(self.session)

        conditions = self._filter_conditions(status, start_date, end_date)
        scope = approval_router.department_scope_user_ids(hod, directory)
        if scope is not None:
            conditions.append(GatePass.user_id.in_(scope))
        if employee_id is not None:
            conditions.append(GatePass.user_id == employee_id)
        return await self._paginate(conditions, page, limit)

    async def get_department_employees(self, viewer: User, hod_id: int) -> List[DepartmentEmployee]:
        hod = await self._get_user(hod_id)
        approval_router.ensure_can_view_department(viewer, hod)
        directory = await approval_router.load_directory(self.session)

        scope = approval_router.department_scope_user_ids(hod, directory)
        employees = [
            u for u in directory.users.values()
            if u.is_active and not u.is_deleted and u.id != hod.id and (scope is None or u.id in scope)
        ]
        employees.sort(key=lambda u: u.name.lower())

        open_status = {}
        if employees:
            result = await self.session.execute(
                select(GatePass.user_id, GatePass.status).where(
                    GatePass.user_id.in_([u.id for u in employees]),
                    GatePass.status.in_(OPEN_STATES),
                    GatePass.is_deleted == False,
                )
            )
            open_status = {user_id: status for user_id, status in result.all()}

        return [
            DepartmentEmployee(
                id=u.id,
                name=u.name,
                payroll_no=u.payroll_no,
                role=u.role,
                department_id=u.department_id,
                department_name=(
                    directory.departments[u.department_id].name
                    if u.department_id in directory.departments else None
                ),
                open_pass_status=open_status.get(u.id),
            )
            for u in employees
        ]

    # endregion

    # region ========== Queues and boards ==========

    async def get_pending_approvals(
        self,
        viewer: User,
        approver_id: int,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> PaginatedResponse[GatePassResponse]:
        """PENDING passes this approver may decide, oldest first"""
        approver = await self._get_user(approver_id)
        approval_router.ensure_can_view_queue(viewer, approver)
        directory = await approval_router.load_directory(self.session)
        page, limit = self._page_args(page, limit)

        result = await self.session.execute(
            select(GatePass)
            .options(*PASS_LOAD_OPTIONS)
            .execution_options(populate_existing=True)
            .where(GatePass.status == GatePassStatus.PENDING, GatePass.is_deleted == False)
            .order_by(GatePass.request_time.asc(), GatePass.id)
        )
        queue = [
            gp for gp in result.scalars().all()
            if gp.user_id in directory.users
            and approval_router.is_pending_for(approver, directory.users[gp.user_id], directory)
        ]

        start = (page - 1) * limit
        return PaginatedResponse[GatePassResponse](
            data=self._project(queue[start:start + limit]),
            pagination=PaginationMeta.build(page, limit, len(queue)),
        )

    async def get_today(
        self,
        viewer: User,
        page: int = 1,
        limit: Optional[int] = None,
        status: Optional[GatePassStatus] = None,
    ) -> PaginatedResponse[GatePassResponse]:
        approval_router.ensure_can_view_daily_board(viewer)
        today = local_today(self.clock())
        conditions = self._filter_conditions(status, today, today)
        return await self._paginate(conditions, page, limit)

    async def get_all(
        self,
        viewer: User,
        page: int = 1,
        limit: Optional[int] = None,
        status: Optional[GatePassStatus] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> PaginatedResponse[GatePassResponse]:
        if not approval_router.can_list_all_passes(viewer):
            raise AuthorizationError("Only administrators can list all gate passes")
        conditions = self._filter_conditions(status, start_date, end_date)
        return await self._paginate(conditions, page, limit)

    async def _load_visible_pass(self, viewer: User, pass_id: str) -> GatePass:
        result = await self.session.execute(
            select(GatePass)
            .options(*PASS_LOAD_OPTIONS)
            .execution_options(populate_existing=True)
            .where(GatePass.id == pass_id, GatePass.is_deleted == False)
        )
        gate_pass = result.scalar_one_or_none()
        if gate_pass is None:
            raise NotFoundError(f"Gate pass {pass_id} not found")

        directory = await approval_router.load_directory(self.session)
        requester = directory.users.get(gate_pass.user_id)
        approval_router.ensure_can_view_pass(viewer, gate_pass, requester, directory)
        return gate_pass

    async def get_pass_for_viewer(self, viewer: User, pass_id: str) -> GatePassResponse:
        gate_pass = await self._load_visible_pass(viewer, pass_id)
        return build_pass_response(gate_pass, self.clock())

    async def render_pass_for_viewer(self, viewer: User, pass_id: str) -> str:
        gate_pass = await self._load_visible_pass(viewer, pass_id)
        return GatePassRenderer().render(gate_pass, self.clock())

    # endregion
