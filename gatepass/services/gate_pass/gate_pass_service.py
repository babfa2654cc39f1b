import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gatepass.core.config import settings
from gatepass.core.exceptions import (
    AuthorizationError, BaseAppException, InvalidTransitionError, NotFoundError, ValidationError,
)
from gatepass.core.logging import log_user_action
from gatepass.models.auth.user import User
from gatepass.models.gate_pass.gate_pass import GatePass
from gatepass.models.gate_pass.gate_pass_event import GatePassEvent
from gatepass.models.shared.enums import GatePassAction, GatePassStatus
from gatepass.services.gate_pass import approval_router, duration
from gatepass.services.gate_pass.events import (
    EventBus, PassApproved, PassCheckedOut, PassRejected, PassReturned, PassSubmitted,
)
from gatepass.services.gate_pass.projection import PASS_LOAD_OPTIONS
from gatepass.services.gate_pass.state_machine import ACTIVE_STATES, OPEN_STATES, next_state
from gatepass.utils.date_time import Clock, ensure_utc, utcnow

logger = logging.getLogger(__name__)


class GatePassService:
    """
    Gate pass lifecycle: submission, approval routing and the gate ledger.

    Every mutation is a compare-and-set on (id, status, version), so when two
    callers race on the same pass exactly one commits and the other receives
    InvalidTransitionError. Domain events are published after commit.
    """

    def __init__(self, session: AsyncSession, events: Optional[EventBus] = None, clock: Clock = utcnow):
        self.session = session
        self.events = events or EventBus()
        self.clock = clock

    # region ========== Lookups ==========

    async def _get_user(self, user_id: int) -> User:
        user = await self.session.get(User, user_id)
        if user is None or user.is_deleted:
            raise NotFoundError(f"User {user_id} not found")
        return user

    async def _get_pass(self, pass_id: str, for_update: bool = False) -> GatePass:
        query = (
            select(GatePass)
            .options(*PASS_LOAD_OPTIONS)
            .where(GatePass.id == pass_id, GatePass.is_deleted == False)
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update(of=GatePass)
        result = await self.session.execute(query)
        gate_pass = result.scalar_one_or_none()
        if gate_pass is None:
            raise NotFoundError(f"Gate pass {pass_id} not found")
        return gate_pass

    async def get_pass(self, pass_id: str) -> GatePass:
        return await self._get_pass(pass_id)

    async def count_open_passes(self, user_id: int) -> int:
        result = await self.session.execute(
            select(func.count(GatePass.id)).where(
                GatePass.user_id == user_id,
                GatePass.status.in_(OPEN_STATES),
                GatePass.is_deleted == False,
            )
        )
        return result.scalar() or 0

    async def _lock_requester(self, user_id: int) -> None:
        """
        Serialize submissions of one user until commit.

        The no-op UPDATE takes the row lock on PostgreSQL and the write lock on
        SQLite, which ignores FOR UPDATE.
        """
        await self.session.execute(
            update(User)
            .where(User.id == user_id)
            .values(updated_at=User.updated_at)
            .execution_options(synchronize_session=False)
        )

    async def _publish(self, event) -> GatePass:
        """Publish after commit, then reload; a failing subscriber may have rolled the session back"""
        await self.events.publish(event)
        return await self._get_pass(event.pass_id)

    # endregion

    # region ========== Submission ==========

    def _validate_text(self, reason: Optional[str], destination: Optional[str]):
        reason = (reason or "").strip()
        destination = (destination or "").strip()
        if not reason:
            raise ValidationError("Reason is required")
        if reason.lower() in {r.lower() for r in settings.PLACEHOLDER_REASONS}:
            raise ValidationError("Please give a specific reason; 'personal' is not accepted")
        if not destination:
            raise ValidationError("Destination is required")
        return reason, destination

    async def submit(
        self,
        user_id: int,
        reason: str,
        destination: str,
        duration_minutes: Optional[int] = None,
        expected_return: Optional[datetime] = None,
    ) -> GatePass:
        """Create a PENDING pass; all validation happens before anything is written"""
        reason, destination = self._validate_text(reason, destination)
        requester = await self._get_user(user_id)
        if not requester.is_active:
            raise AuthorizationError("Inactive users cannot request gate passes")

        now = self.clock()
        if duration_minutes is None:
            if expected_return is None:
                raise ValidationError("Either duration_minutes or expected_return is required")
            duration_minutes = duration.duration_from_expected_return(now, expected_return)
        duration_minutes = duration.validate_submission_duration(duration_minutes)

        requester_id = requester.id
        try:
            await self._lock_requester(requester_id)
            if settings.ENFORCE_SINGLE_OPEN_PASS and await self.count_open_passes(requester_id) > 0:
                raise ValidationError("You already have an open gate pass; it must be returned or rejected first")

            gate_pass = GatePass(
                user_id=requester.id,
                reason=reason,
                destination=destination,
                status=GatePassStatus.PENDING,
                request_time=now,
                expected_return=duration.expected_return(now, duration_minutes),
                version=1,
                created_by=requester.id,
            )
            self.session.add(gate_pass)
            await self.session.flush()
            self.session.add(GatePassEvent(
                gate_pass_id=gate_pass.id,
                action=GatePassAction.SUBMIT,
                actor_id=requester.id,
                from_status=None,
                to_status=GatePassStatus.PENDING,
                occurred_at=now,
                details={"duration_minutes": duration_minutes},
            ))
            await self.session.commit()
        except BaseAppException:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error submitting gate pass for user {user_id}: {e}")
            raise

        log_user_action(requester.id, GatePassAction.SUBMIT.value, "gate_pass", gate_pass.id)

        directory = await approval_router.load_directory(self.session)
        approver_ids = approval_router.resolve_approver_ids(requester, directory)
        if not approver_ids:
            approver_ids = {
                u.id for u in directory.users.values()
                if approval_router.can_manage_organization(u) and u.id != requester.id
            }

        return await self._publish(PassSubmitted(
            pass_id=gate_pass.id,
            user_id=gate_pass.user_id,
            actor_id=requester.id,
            occurred_at=now,
            destination=gate_pass.destination,
            expected_return=ensure_utc(gate_pass.expected_return),
            reason=gate_pass.reason,
            approver_ids=sorted(approver_ids),
        ))

    # endregion

    # region ========== Transitions ==========

    async def _transition(
        self,
        gate_pass: GatePass,
        action: GatePassAction,
        actor_id: Optional[int],
        now: datetime,
        values: Dict[str, Any],
        details: Optional[Dict[str, Any]] = None,
    ) -> GatePass:
        pass_id = gate_pass.id
        from_status = gate_pass.status
        to_status = next_state(from_status, action)

        try:
            result = await self.session.execute(
                update(GatePass)
                .where(
                    GatePass.id == pass_id,
                    GatePass.status == from_status,
                    GatePass.version == gate_pass.version,
                )
                .values(status=to_status, version=GatePass.version + 1, updated_by=actor_id, **values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await self.session.rollback()
                raise InvalidTransitionError(
                    f"Gate pass {pass_id} was changed by another request and is no longer {from_status.value}"
                )

            self.session.add(GatePassEvent(
                gate_pass_id=pass_id,
                action=action,
                actor_id=actor_id,
                from_status=from_status,
                to_status=to_status,
                occurred_at=now,
                details=details,
            ))
            await self.session.commit()
        except BaseAppException:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error applying {action.value} to gate pass {pass_id}: {e}")
            raise

        log_user_action(actor_id, action.value, "gate_pass", pass_id)
        return await self._get_pass(pass_id)

    async def _authorize_decision(self, gate_pass: GatePass, approver_id: int) -> User:
        approver = await self._get_user(approver_id)
        requester = await self._get_user(gate_pass.user_id)
        directory = await approval_router.load_directory(self.session)
        approval_router.ensure_can_approve(approver, requester, directory)
        return approver

    async def approve(
        self,
        pass_id: str,
        approver_id: int,
        adjusted_duration_minutes: Optional[int] = None,
    ) -> GatePass:
        gate_pass = await self._get_pass(pass_id, for_update=True)
        approver = await self._authorize_decision(gate_pass, approver_id)

        now = self.clock()
        values: Dict[str, Any] = {"approval_time": now, "approver_id": approver.id}
        details: Dict[str, Any] = {}
        if adjusted_duration_minutes is not None:
            adjusted = duration.validate_adjusted_duration(adjusted_duration_minutes)
            values["expected_return"] = duration.expected_return(gate_pass.request_time, adjusted)
            details["adjusted_duration_minutes"] = adjusted
            adjusted_duration_minutes = adjusted

        gate_pass = await self._transition(gate_pass, GatePassAction.APPROVE, approver.id, now, values, details or None)
        return await self._publish(PassApproved(
            pass_id=gate_pass.id,
            user_id=gate_pass.user_id,
            actor_id=approver.id,
            occurred_at=now,
            destination=gate_pass.destination,
            expected_return=ensure_utc(gate_pass.expected_return),
            adjusted_duration_minutes=adjusted_duration_minutes,
        ))

    async def reject(self, pass_id: str, approver_id: int) -> GatePass:
        gate_pass = await self._get_pass(pass_id, for_update=True)
        approver = await self._authorize_decision(gate_pass, approver_id)

        now = self.clock()
        gate_pass = await self._transition(
            gate_pass, GatePassAction.REJECT, approver.id, now,
            {"rejection_time": now, "approver_id": approver.id},
        )
        return await self._publish(PassRejected(
            pass_id=gate_pass.id,
            user_id=gate_pass.user_id,
            actor_id=approver.id,
            occurred_at=now,
            destination=gate_pass.destination,
            expected_return=ensure_utc(gate_pass.expected_return),
        ))

    async def check_out(self, pass_id: str, actor_id: int) -> GatePass:
        actor = await self._get_user(actor_id)
        approval_router.ensure_can_operate_gate(actor)
        gate_pass = await self._get_pass(pass_id, for_update=True)

        now = self.clock()
        gate_pass = await self._transition(gate_pass, GatePassAction.CHECK_OUT, actor.id, now, {"out_time": now})
        return await self._publish(PassCheckedOut(
            pass_id=gate_pass.id,
            user_id=gate_pass.user_id,
            actor_id=actor.id,
            occurred_at=now,
            destination=gate_pass.destination,
            expected_return=ensure_utc(gate_pass.expected_return),
        ))

    async def check_in(self, pass_id: str, actor_id: int) -> GatePass:
        actor = await self._get_user(actor_id)
        approval_router.ensure_can_operate_gate(actor)
        gate_pass = await self._get_pass(pass_id, for_update=True)

        now = self.clock()
        total = duration.total_duration_minutes(gate_pass.out_time, now) if gate_pass.out_time else 0
        was_overdue = ensure_utc(now) > ensure_utc(gate_pass.expected_return)
        gate_pass = await self._transition(
            gate_pass, GatePassAction.CHECK_IN, actor.id, now,
            {"in_time": now, "total_duration_minutes": total},
            {"was_overdue": was_overdue},
        )
        return await self._publish(PassReturned(
            pass_id=gate_pass.id,
            user_id=gate_pass.user_id,
            actor_id=actor.id,
            occurred_at=now,
            destination=gate_pass.destination,
            expected_return=ensure_utc(gate_pass.expected_return),
            total_duration_minutes=total,
            was_overdue=was_overdue,
        ))

    # endregion

    # region ========== Security desk ==========

    async def find_active_pass_by_payroll(self, payroll_no: str, actor_id: int) -> GatePass:
        """The approved or checked-out pass a security guard can act on for this person"""
        actor = await self._get_user(actor_id)
        approval_router.ensure_can_operate_gate(actor)

        result = await self.session.execute(
            select(User).where(User.payroll_no == payroll_no.strip(), User.is_deleted == False)
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError(f"No employee with payroll number {payroll_no}")

        result = await self.session.execute(
            select(GatePass)
            .options(*PASS_LOAD_OPTIONS)
            .where(
                GatePass.user_id == user.id,
                GatePass.status.in_(ACTIVE_STATES),
                GatePass.is_deleted == False,
            )
            .order_by(GatePass.request_time.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        gate_pass = result.scalar_one_or_none()
        if gate_pass is None:
            raise NotFoundError(f"No approved gate pass for payroll number {payroll_no}")
        return gate_pass

    # endregion
