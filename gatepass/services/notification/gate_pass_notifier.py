import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from gatepass.services.gate_pass.events import (
    EventBus, PassApproved, PassCheckedOut, PassRejected, PassReturned, PassSubmitted,
)
from gatepass.services.notification.alert_scheduler import AlertScheduler, get_alert_scheduler
from gatepass.services.notification.notification_service import NotificationService

logger = logging.getLogger(__name__)


class GatePassNotifier:
    """Turns gate pass domain events into notifications and time alerts"""

    def __init__(self, session: AsyncSession, alerts: Optional[AlertScheduler] = None):
        self.notifications = NotificationService(session)
        self.alerts = alerts or get_alert_scheduler()

    def register(self, bus: EventBus) -> EventBus:
        bus.subscribe(PassSubmitted, self.on_submitted)
        bus.subscribe(PassApproved, self.on_approved)
        bus.subscribe(PassRejected, self.on_rejected)
        bus.subscribe(PassCheckedOut, self.on_checked_out)
        bus.subscribe(PassReturned, self.on_returned)
        return bus

    async def on_submitted(self, event: PassSubmitted) -> None:
        for approver_id in event.approver_ids:
            await self.notifications.notify(
                approver_id,
                "New Gate Pass Request",
                f"A gate pass to {event.destination} is waiting for your approval.",
                metadata={"type": "approval_request", "gate_pass_id": event.pass_id, "reason": event.reason},
                reference_id=event.pass_id,
            )
        await self.alerts.schedule(event.pass_id, event.expected_return, now=event.occurred_at)

    async def on_approved(self, event: PassApproved) -> None:
        body = f"Your gate pass to {event.destination} has been approved."
        if event.adjusted_duration_minutes:
            body += f" Duration adjusted to {event.adjusted_duration_minutes} minutes."
        await self.notifications.notify(
            event.user_id,
            "Gate Pass Approved",
            body,
            metadata={
                "type": "approval",
                "gate_pass_id": event.pass_id,
                "approver_id": event.actor_id,
                "expected_return": event.expected_return,
            },
            reference_id=event.pass_id,
        )
        await self.alerts.schedule(event.pass_id, event.expected_return, now=event.occurred_at)

    async def on_rejected(self, event: PassRejected) -> None:
        await self.alerts.cancel(event.pass_id)
        await self.notifications.notify(
            event.user_id,
            "Gate Pass Rejected",
            f"Your gate pass to {event.destination} has been rejected.",
            metadata={"type": "rejection", "gate_pass_id": event.pass_id, "approver_id": event.actor_id},
            reference_id=event.pass_id,
        )

    async def on_checked_out(self, event: PassCheckedOut) -> None:
        await self.notifications.notify(
            event.user_id,
            "Checked Out",
            f"You have been checked out at the gate. Please return by "
            f"{event.expected_return.strftime('%H:%M')} UTC.",
            metadata={"type": "check_out", "gate_pass_id": event.pass_id},
            reference_id=event.pass_id,
        )

    async def on_returned(self, event: PassReturned) -> None:
        await self.alerts.cancel(event.pass_id)
        await self.notifications.notify(
            event.user_id,
            "Welcome Back",
            f"You have been checked in after {event.total_duration_minutes} minutes.",
            metadata={
                "type": "check_in",
                "gate_pass_id": event.pass_id,
                "total_duration_minutes": event.total_duration_minutes,
                "was_overdue": event.was_overdue,
            },
            reference_id=event.pass_id,
        )


def build_event_bus(session: AsyncSession, alerts: Optional[AlertScheduler] = None) -> EventBus:
    return GatePassNotifier(session, alerts).register(EventBus())
