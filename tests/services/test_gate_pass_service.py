import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from gatepass.core.config import settings
from gatepass.core.exceptions import (
    AuthorizationError, InvalidTransitionError, NotFoundError, ValidationError,
)
from gatepass.models import GatePass, GatePassEvent
from gatepass.models.shared.enums import AlertType, GatePassAction, GatePassStatus
from gatepass.services.gate_pass import duration
from gatepass.services.gate_pass.projection import build_pass_response
from gatepass.services.notification.notification_service import NotificationService
from gatepass.utils.date_time import ensure_utc


async def submit(service, user, minutes=30, reason="Bank visit", destination="KCB Bank, Moi Avenue"):
    return await service.submit(user.id, reason, destination, duration_minutes=minutes)


class TestSubmission:
    async def test_submit_creates_pending_pass(self, service, org, clock):
        """Submitting sets request time, deadline and an audit row"""
        gate_pass = await submit(service, org.staff)

        assert gate_pass.status == GatePassStatus.PENDING
        assert ensure_utc(gate_pass.request_time) == clock.now
        assert ensure_utc(gate_pass.expected_return) == clock.now + timedelta(minutes=30)
        assert gate_pass.version == 1
        assert gate_pass.approval_time is None and gate_pass.rejection_time is None

    async def test_expected_return_instead_of_duration(self, service, org, clock):
        gate_pass = await service.submit(
            org.staff.id, "Clinic", "City clinic", expected_return=clock.now + timedelta(minutes=40)
        )
        assert ensure_utc(gate_pass.expected_return) == clock.now + timedelta(minutes=40)

    @pytest.mark.parametrize("reason", ["Personal", "personal reasons", "  PERSONAL REASON  ", "", "   "])
    async def test_placeholder_or_empty_reason_rejected_before_anything_is_written(self, service, org, session, reason):
        with pytest.raises(ValidationError):
            await service.submit(org.staff.id, reason, "Town", duration_minutes=30)
        assert await session.scalar(select(func.count(GatePass.id))) == 0

    async def test_empty_destination_rejected(self, service, org):
        with pytest.raises(ValidationError):
            await service.submit(org.staff.id, "Bank visit", "  ", duration_minutes=30)

    @pytest.mark.parametrize("minutes", [4, 61])
    async def test_duration_bounds(self, service, org, minutes):
        with pytest.raises(ValidationError):
            await submit(service, org.staff, minutes=minutes)

    async def test_duration_or_deadline_required(self, service, org):
        with pytest.raises(ValidationError):
            await service.submit(org.staff.id, "Bank visit", "Town")

    async def test_single_open_pass_per_user(self, service, org):
        await submit(service, org.staff)
        with pytest.raises(ValidationError):
            await submit(service, org.staff)

    async def test_concurrent_submissions_leave_one_open_pass(self, session_maker, make_service, org):
        async def submit_in_own_session():
            async with session_maker() as db:
                return await submit(make_service(db), org.staff)

        results = await asyncio.gather(
            submit_in_own_session(), submit_in_own_session(), return_exceptions=True
        )
        created = [r for r in results if isinstance(r, GatePass)]
        refused = [r for r in results if isinstance(r, ValidationError)]
        assert len(created) == 1 and len(refused) == 1

        async with session_maker() as db:
            stored = await db.scalar(select(func.count(GatePass.id)).where(GatePass.user_id == org.staff.id))
            assert stored == 1

    async def test_new_pass_allowed_after_rejection(self, service, org):
        first = await submit(service, org.staff)
        await service.reject(first.id, org.hod.id)
        second = await submit(service, org.staff)
        assert second.id != first.id

    async def test_single_open_pass_can_be_disabled(self, service, org, monkeypatch):
        monkeypatch.setattr(settings, "ENFORCE_SINGLE_OPEN_PASS", False)
        await submit(service, org.staff)
        await submit(service, org.staff)

    async def test_approvers_are_notified_and_alerts_scheduled(self, service, org, session, alerts):
        gate_pass = await submit(service, org.staff)

        notifications = await NotificationService(session).get_user_notifications(org.hod.id)
        assert len(notifications) == 1
        assert notifications[0]["reference_id"] == gate_pass.id
        assert {a.alert_type.value for a in alerts.scheduled_alerts(gate_pass.id)} == {"WARNING", "CRITICAL", "OVERDUE"}


class TestDecisions:
    async def test_approve_sets_approval_fields(self, service, org, clock):
        gate_pass = await submit(service, org.staff)
        clock.advance(minutes=1)
        approved = await service.approve(gate_pass.id, org.hod.id)

        assert approved.status == GatePassStatus.APPROVED
        assert approved.approver_id == org.hod.id
        assert ensure_utc(approved.approval_time) == clock.now
        assert approved.rejection_time is None
        assert approved.version == 2
        assert ensure_utc(approved.expected_return) == ensure_utc(gate_pass.request_time) + timedelta(minutes=30)

    async def test_approve_with_adjusted_duration(self, service, org):
        gate_pass = await submit(service, org.staff, minutes=30)
        approved = await service.approve(gate_pass.id, org.hod.id, adjusted_duration_minutes=45)
        assert ensure_utc(approved.expected_return) == ensure_utc(approved.request_time) + timedelta(minutes=45)

    async def test_adjusted_duration_bounds(self, service, org):
        gate_pass = await submit(service, org.staff)
        with pytest.raises(ValidationError):
            await service.approve(gate_pass.id, org.hod.id, adjusted_duration_minutes=121)

    async def test_reject_is_terminal(self, service, org):
        gate_pass = await submit(service, org.staff)
        rejected = await service.reject(gate_pass.id, org.hod.id)
        assert rejected.status == GatePassStatus.REJECTED
        assert rejected.rejection_time is not None and rejected.approval_time is None

        with pytest.raises(InvalidTransitionError):
            await service.approve(gate_pass.id, org.hod.id)

    async def test_self_approval_forbidden(self, service, org):
        gate_pass = await submit(service, org.hod)
        with pytest.raises(AuthorizationError):
            await service.approve(gate_pass.id, org.hod.id)

    async def test_hod_request_goes_to_executives(self, service, org):
        gate_pass = await submit(service, org.hod)
        approved = await service.approve(gate_pass.id, org.ceo.id)
        assert approved.approver_id == org.ceo.id

    async def test_unrelated_head_cannot_approve(self, service, org):
        gate_pass = await submit(service, org.staff)
        with pytest.raises(AuthorizationError):
            await service.approve(gate_pass.id, org.other_hod.id)

    async def test_admin_override(self, service, org):
        gate_pass = await submit(service, org.staff)
        approved = await service.approve(gate_pass.id, org.admin.id)
        assert approved.approver_id == org.admin.id

    async def test_authorization_checked_before_state(self, service, org):
        gate_pass = await submit(service, org.staff)
        await service.approve(gate_pass.id, org.hod.id)
        with pytest.raises(AuthorizationError):
            await service.approve(gate_pass.id, org.other_hod.id)

    async def test_unknown_pass(self, service, org):
        with pytest.raises(NotFoundError):
            await service.approve("00000000-0000-0000-0000-000000000000", org.hod.id)

    async def test_concurrent_approvals_have_one_winner(self, session_maker, make_service, service, org):
        gate_pass = await submit(service, org.staff)

        async def approve_as(approver_id):
            async with session_maker() as db:
                return await make_service(db).approve(gate_pass.id, approver_id)

        results = await asyncio.gather(
            approve_as(org.hod.id), approve_as(org.admin.id), return_exceptions=True
        )
        winners = [r for r in results if isinstance(r, GatePass)]
        losers = [r for r in results if isinstance(r, InvalidTransitionError)]
        assert len(winners) == 1 and len(losers) == 1

        async with session_maker() as db:
            stored = await db.get(GatePass, gate_pass.id)
            assert stored.status == GatePassStatus.APPROVED
            assert stored.version == 2
            events = await db.scalar(
                select(func.count(GatePassEvent.id)).where(
                    GatePassEvent.gate_pass_id == gate_pass.id,
                    GatePassEvent.action == GatePassAction.APPROVE,
                )
            )
            assert events == 1


class TestLedger:
    async def test_bank_visit_round_trip(self, service, org, clock, session):
        """Submit, approve, leave and return 25 minutes later"""
        gate_pass = await submit(service, org.staff, minutes=30)
        clock.advance(minutes=1)
        await service.approve(gate_pass.id, org.hod.id)
        clock.advance(minutes=1)
        out = await service.check_out(gate_pass.id, org.security.id)
        assert out.status == GatePassStatus.CHECKED_OUT
        assert ensure_utc(out.out_time) == clock.now

        clock.advance(minutes=25)
        returned = await service.check_in(gate_pass.id, org.security.id)

        assert returned.status == GatePassStatus.RETURNED
        assert returned.total_duration_minutes == 25
        assert duration.elapsed_minutes(returned, clock.now + timedelta(hours=2)) == 25
        assert not duration.is_overdue(returned, clock.now)

        response = build_pass_response(returned, clock.now)
        assert response.elapsed_minutes == 25
        assert response.is_overdue is False

        actions = (await session.execute(
            select(GatePassEvent.action).where(GatePassEvent.gate_pass_id == gate_pass.id).order_by(GatePassEvent.id)
        )).scalars().all()
        assert actions == [
            GatePassAction.SUBMIT, GatePassAction.APPROVE, GatePassAction.CHECK_OUT, GatePassAction.CHECK_IN,
        ]

    async def test_double_check_in(self, service, org, clock, session_maker):
        gate_pass = await submit(service, org.staff)
        await service.approve(gate_pass.id, org.hod.id)
        await service.check_out(gate_pass.id, org.security.id)
        clock.advance(minutes=20)
        returned = await service.check_in(gate_pass.id, org.security.id)
        in_time = ensure_utc(returned.in_time)
        total = returned.total_duration_minutes

        clock.advance(minutes=30)
        with pytest.raises(InvalidTransitionError):
            await service.check_in(gate_pass.id, org.security.id)

        async with session_maker() as db:
            stored = await db.get(GatePass, gate_pass.id)
            assert ensure_utc(stored.in_time) == in_time
            assert stored.total_duration_minutes == total == 20
            assert stored.version == 4

    async def test_check_out_requires_approval(self, service, org):
        gate_pass = await submit(service, org.staff)
        with pytest.raises(InvalidTransitionError):
            await service.check_out(gate_pass.id, org.security.id)

    async def test_only_gate_operators_check_out(self, service, org):
        gate_pass = await submit(service, org.staff)
        await service.approve(gate_pass.id, org.hod.id)
        with pytest.raises(AuthorizationError):
            await service.check_out(gate_pass.id, org.hod.id)

    async def test_overdue_while_out(self, service, org, clock):
        gate_pass = await submit(service, org.staff, minutes=10)
        await service.approve(gate_pass.id, org.hod.id)
        out = await service.check_out(gate_pass.id, org.security.id)

        deadline = ensure_utc(out.expected_return)
        assert not duration.is_overdue(out, deadline - timedelta(seconds=1))
        assert duration.is_overdue(out, deadline + timedelta(seconds=1))

    async def test_late_return_recorded(self, service, org, clock, session):
        gate_pass = await submit(service, org.staff, minutes=10)
        await service.approve(gate_pass.id, org.hod.id)
        await service.check_out(gate_pass.id, org.security.id)
        clock.advance(minutes=15)
        returned = await service.check_in(gate_pass.id, org.security.id)

        assert duration.returned_late(returned)
        event = (await session.execute(
            select(GatePassEvent).where(
                GatePassEvent.gate_pass_id == gate_pass.id, GatePassEvent.action == GatePassAction.CHECK_IN
            )
        )).scalar_one()
        assert event.details == {"was_overdue": True}

    async def test_check_in_cancels_alerts(self, service, org, alerts):
        gate_pass = await submit(service, org.staff)
        await service.approve(gate_pass.id, org.hod.id)
        assert alerts.scheduled_alerts(gate_pass.id)

        await service.check_out(gate_pass.id, org.security.id)
        await service.check_in(gate_pass.id, org.security.id)
        assert alerts.scheduled_alerts(gate_pass.id) == []

    async def test_reject_cancels_alerts(self, service, org, alerts):
        gate_pass = await submit(service, org.staff)
        await service.reject(gate_pass.id, org.hod.id)
        assert alerts.scheduled_alerts(gate_pass.id) == []


class TestPayrollLookup:
    async def test_finds_approved_pass(self, service, org):
        gate_pass = await submit(service, org.staff)
        await service.approve(gate_pass.id, org.hod.id)

        found = await service.find_active_pass_by_payroll(org.staff.payroll_no, org.security.id)
        assert found.id == gate_pass.id

    async def test_finds_checked_out_pass(self, service, org):
        gate_pass = await submit(service, org.staff)
        await service.approve(gate_pass.id, org.hod.id)
        await service.check_out(gate_pass.id, org.security.id)

        found = await service.find_active_pass_by_payroll(org.staff.payroll_no, org.security.id)
        assert found.status == GatePassStatus.CHECKED_OUT

    async def test_pending_pass_is_not_active(self, service, org):
        await submit(service, org.staff)
        with pytest.raises(NotFoundError):
            await service.find_active_pass_by_payroll(org.staff.payroll_no, org.security.id)

    async def test_unknown_payroll(self, service, org):
        with pytest.raises(NotFoundError):
            await service.find_active_pass_by_payroll("NOPE", org.security.id)

    async def test_requires_gate_operator(self, service, org):
        with pytest.raises(AuthorizationError):
            await service.find_active_pass_by_payroll(org.staff.payroll_no, org.staff.id)


class TestTimeAlerts:
    async def test_fired_alert_is_delivered(self, service, org, alerts, session_maker):
        gate_pass = await submit(service, org.staff)
        deadline = ensure_utc(gate_pass.expected_return).isoformat()

        alerts._fire(gate_pass.id, AlertType.OVERDUE, deadline)
        in_flight = set(alerts._deliveries)
        assert len(in_flight) == 1

        await asyncio.gather(*in_flight)
        assert not alerts._deliveries

        async with session_maker() as db:
            notifications = await NotificationService(db).get_user_notifications(org.staff.id)
        assert [n["data"]["type"] for n in notifications] == ["OVERDUE"]
        assert notifications[0]["reference_id"] == gate_pass.id
