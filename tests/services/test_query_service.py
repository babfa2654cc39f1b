from datetime import timedelta

import pytest

from gatepass.core.exceptions import AuthorizationError, ValidationError
from gatepass.models.shared.enums import GatePassStatus
from gatepass.services.gate_pass.query_service import GatePassQueryService
from gatepass.utils.date_time import local_today


@pytest.fixture
def queries(session, clock):
    return GatePassQueryService(session, clock=clock)


async def submit(service, user, minutes=30):
    return await service.submit(user.id, "Bank visit", "Town", duration_minutes=minutes)


class TestHistories:
    async def test_user_history_newest_first_and_paginated(self, service, queries, org, clock):
        ids = []
        for _ in range(3):
            gate_pass = await submit(service, org.staff)
            ids.append(gate_pass.id)
            await service.reject(gate_pass.id, org.hod.id)
            clock.advance(minutes=5)

        page = await queries.get_user_history(org.staff, org.staff.id, page=1, limit=2)
        assert [p.id for p in page.data] == [ids[2], ids[1]]
        assert page.pagination.total_records == 3
        assert page.pagination.total_pages == 2
        assert page.pagination.has_next and not page.pagination.has_previous

        second = await queries.get_user_history(org.staff, org.staff.id, page=2, limit=2)
        assert [p.id for p in second.data] == [ids[0]]
        assert second.pagination.has_previous and not second.pagination.has_next

    async def test_status_filter(self, service, queries, org):
        rejected = await submit(service, org.staff)
        await service.reject(rejected.id, org.hod.id)
        pending = await submit(service, org.staff)

        page = await queries.get_user_history(org.staff, org.staff.id, status=GatePassStatus.PENDING)
        assert [p.id for p in page.data] == [pending.id]

    async def test_date_filter(self, service, queries, org, clock):
        await submit(service, org.staff)
        today = local_today(clock.now)

        assert (await queries.get_user_history(org.staff, org.staff.id, start_date=today, end_date=today)).data
        tomorrow = today + timedelta(days=1)
        assert not (await queries.get_user_history(org.staff, org.staff.id, start_date=tomorrow)).data
        with pytest.raises(ValidationError):
            await queries.get_user_history(org.staff, org.staff.id, start_date=tomorrow, end_date=today)

    async def test_other_staff_cannot_read_history(self, queries, org):
        with pytest.raises(AuthorizationError):
            await queries.get_user_history(org.warehouse_staff, org.staff.id)

    async def test_department_history_includes_child_departments(self, service, queries, org):
        await submit(service, org.staff)
        await submit(service, org.warehouse_staff)
        await submit(service, org.other_hod)

        page = await queries.get_department_history(org.hod, org.hod.id)
        assert {p.user_id for p in page.data} == {org.staff.id, org.warehouse_staff.id}

        filtered = await queries.get_department_history(org.hod, org.hod.id, employee_id=org.staff.id)
        assert {p.user_id for p in filtered.data} == {org.staff.id}

    async def test_executive_sees_whole_organization(self, service, queries, org):
        await submit(service, org.staff)
        await submit(service, org.other_hod)

        page = await queries.get_department_history(org.ceo, org.ceo.id)
        assert page.pagination.total_records == 2

    async def test_head_cannot_read_other_department(self, queries, org):
        with pytest.raises(AuthorizationError):
            await queries.get_department_history(org.other_hod, org.hod.id)

    async def test_department_employees(self, service, queries, org):
        await submit(service, org.staff)
        employees = await queries.get_department_employees(org.hod, org.hod.id)

        by_id = {e.id: e for e in employees}
        assert set(by_id) == {org.staff.id, org.warehouse_staff.id}
        assert by_id[org.staff.id].open_pass_status == GatePassStatus.PENDING
        assert by_id[org.warehouse_staff.id].open_pass_status is None
        assert by_id[org.warehouse_staff.id].department_name == "Warehouse"


class TestPendingQueue:
    async def test_fifo_queue_for_head(self, service, queries, org, clock):
        first = await submit(service, org.staff)
        clock.advance(minutes=1)
        second = await submit(service, org.warehouse_staff)
        await submit(service, org.other_hod)

        queue = await queries.get_pending_approvals(org.hod, org.hod.id)
        assert [p.id for p in queue.data] == [first.id, second.id]

    async def test_executives_see_escalated_requests(self, service, queries, org):
        hod_pass = await submit(service, org.other_hod)
        await submit(service, org.staff)

        queue = await queries.get_pending_approvals(org.ceo, org.ceo.id)
        assert [p.id for p in queue.data] == [hod_pass.id]

    async def test_admin_sees_everything_but_own(self, service, queries, org):
        await submit(service, org.staff)
        await submit(service, org.admin)

        queue = await queries.get_pending_approvals(org.admin, org.admin.id)
        assert queue.pagination.total_records == 1

    async def test_cannot_read_another_approvers_queue(self, queries, org):
        with pytest.raises(AuthorizationError):
            await queries.get_pending_approvals(org.staff, org.hod.id)


class TestBoards:
    async def test_today_for_security(self, service, queries, org):
        await submit(service, org.staff)
        page = await queries.get_today(org.security)
        assert page.pagination.total_records == 1

    async def test_today_excludes_yesterday(self, service, queries, org, clock):
        await submit(service, org.staff)
        clock.advance(days=1)
        assert (await queries.get_today(org.ceo)).pagination.total_records == 0

    async def test_staff_cannot_view_today(self, queries, org):
        with pytest.raises(AuthorizationError):
            await queries.get_today(org.staff)

    async def test_all_passes_admin_only(self, service, queries, org):
        await submit(service, org.staff)
        assert (await queries.get_all(org.admin)).pagination.total_records == 1
        with pytest.raises(AuthorizationError):
            await queries.get_all(org.ceo)

    async def test_single_pass_projection(self, service, queries, org, clock):
        gate_pass = await submit(service, org.staff, minutes=10)
        await service.approve(gate_pass.id, org.hod.id)
        clock.advance(minutes=12)

        response = await queries.get_pass_for_viewer(org.staff, gate_pass.id)
        assert response.is_overdue is True
        assert response.minutes_overdue == 2
        assert response.user.name == org.staff.name
        assert response.user.department_name == "Operations"
        assert response.approver.id == org.hod.id

        with pytest.raises(AuthorizationError):
            await queries.get_pass_for_viewer(org.warehouse_staff, gate_pass.id)
