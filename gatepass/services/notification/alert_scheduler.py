"""
Time alerts for open gate passes.

Three alerts are keyed by pass id: a warning a few minutes before the
deadline, a critical one a minute before, and an overdue alert at the
deadline. Alerts are fire-and-forget; they are cancelled whenever the pass
leaves the state that justified them, and delivery re-checks the pass so a
late cancellation can never produce a stale notification.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Set

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gatepass.core.config import settings
from gatepass.models.gate_pass.gate_pass import GatePass
from gatepass.models.shared.enums import AlertType
from gatepass.services.gate_pass.state_machine import OPEN_STATES
from gatepass.services.notification.notification_service import NotificationService
from gatepass.utils.date_time import ensure_utc, utcnow

logger = logging.getLogger(__name__)

ALERT_KEY_PREFIX = "gatepass:alerts:"


@dataclass
class PlannedAlert:
    alert_type: AlertType
    fire_at: datetime


def plan_alerts(expected_return: datetime, now: datetime) -> List[PlannedAlert]:
    """Alerts worth scheduling for a deadline, skipping warnings already in the past"""
    expected_return = ensure_utc(expected_return)
    remaining = expected_return - ensure_utc(now)
    warning = timedelta(minutes=settings.ALERT_WARNING_MINUTES)
    critical = timedelta(minutes=settings.ALERT_CRITICAL_MINUTES)

    planned = []
    if remaining > warning:
        planned.append(PlannedAlert(AlertType.WARNING, expected_return - warning))
    if remaining > critical:
        planned.append(PlannedAlert(AlertType.CRITICAL, expected_return - critical))
    planned.append(PlannedAlert(AlertType.OVERDUE, expected_return))
    return planned


def alert_message(alert_type: AlertType, destination: str) -> Dict[str, str]:
    if alert_type == AlertType.WARNING:
        return {
            "title": "⏰ Time Running Out!",
            "body": f"Your gate pass expires in {settings.ALERT_WARNING_MINUTES} minutes. "
                    f"Please start returning from {destination}.",
        }
    if alert_type == AlertType.CRITICAL:
        return {
            "title": "🚨 URGENT: Return NOW!",
            "body": f"Your gate pass expires in {settings.ALERT_CRITICAL_MINUTES} minute! "
                    f"Return immediately from {destination}.",
        }
    return {
        "title": "❌ Gate Pass OVERDUE!",
        "body": "Your gate pass has expired! Please return immediately. Security has been notified.",
    }


async def deliver_time_alert(
    session: AsyncSession,
    pass_id: str,
    alert_type: AlertType,
    expected_return_iso: Optional[str] = None,
) -> bool:
    """Send one alert if the pass is still open against the same deadline"""
    result = await session.execute(select(GatePass).where(GatePass.id == pass_id))
    gate_pass = result.scalar_one_or_none()
    if gate_pass is None or gate_pass.status not in OPEN_STATES:
        logger.info(f"Dropping {alert_type.value} alert for pass {pass_id}: pass no longer open")
        return False

    if expected_return_iso:
        scheduled_for = ensure_utc(datetime.fromisoformat(expected_return_iso))
        if scheduled_for != ensure_utc(gate_pass.expected_return):
            logger.info(f"Dropping {alert_type.value} alert for pass {pass_id}: deadline changed")
            return False

    message = alert_message(alert_type, gate_pass.destination)
    notifier = NotificationService(session)
    await notifier.notify(
        gate_pass.user_id,
        message["title"],
        message["body"],
        metadata={
            "type": alert_type.value,
            "gate_pass_id": pass_id,
            "destination": gate_pass.destination,
            "expected_return": gate_pass.expected_return,
        },
        reference_id=pass_id,
    )
    return True


class AlertScheduler:
    """Interface for time-alert backends"""

    async def schedule(self, pass_id: str, expected_return: datetime, now: Optional[datetime] = None) -> List[PlannedAlert]:
        raise NotImplementedError

    async def cancel(self, pass_id: str) -> int:
        raise NotImplementedError


class InProcessAlertScheduler(AlertScheduler):
    """Event-loop timers; suited to a single API process and to development"""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory
        self._handles: Dict[str, List[asyncio.TimerHandle]] = {}
        self._planned: Dict[str, List[PlannedAlert]] = {}
        self._deliveries: Set[asyncio.Task] = set()

    def scheduled_alerts(self, pass_id: str) -> List[PlannedAlert]:
        return list(self._planned.get(pass_id, []))

    async def schedule(self, pass_id: str, expected_return: datetime, now: Optional[datetime] = None) -> List[PlannedAlert]:
        await self.cancel(pass_id)
        now = ensure_utc(now) or utcnow()
        planned = plan_alerts(expected_return, now)
        loop = asyncio.get_running_loop()
        deadline_iso = ensure_utc(expected_return).isoformat()

        handles = []
        for alert in planned:
            delay = max((alert.fire_at - now).total_seconds(), 0)
            handles.append(loop.call_later(delay, self._fire, pass_id, alert.alert_type, deadline_iso))

        self._handles[pass_id] = handles
        self._planned[pass_id] = planned
        logger.info(f"🔔 Scheduled {len(planned)} time alerts for gate pass {pass_id}")
        return planned

    async def cancel(self, pass_id: str) -> int:
        handles = self._handles.pop(pass_id, [])
        self._planned.pop(pass_id, None)
        for handle in handles:
            handle.cancel()
        if handles:
            logger.info(f"🗑️ Cleared {len(handles)} alerts for gate pass {pass_id}")
        return len(handles)

    def _fire(self, pass_id: str, alert_type: AlertType, deadline_iso: str) -> None:
        remaining = [a for a in self._planned.get(pass_id, []) if a.alert_type != alert_type]
        if remaining:
            self._planned[pass_id] = remaining
        else:
            self._planned.pop(pass_id, None)
            self._handles.pop(pass_id, None)
        task = asyncio.ensure_future(self._deliver(pass_id, alert_type, deadline_iso))
        self._deliveries.add(task)
        task.add_done_callback(self._deliveries.discard)

    async def _deliver(self, pass_id: str, alert_type: AlertType, deadline_iso: str) -> None:
        session_factory = self._session_factory
        if session_factory is None:
            from gatepass.core.database import async_session_maker
            session_factory = async_session_maker
        try:
            async with session_factory() as session:
                await deliver_time_alert(session, pass_id, alert_type, deadline_iso)
        except Exception as e:
            logger.error(f"Failed to deliver {alert_type.value} alert for pass {pass_id}: {e}")


class CeleryAlertScheduler(AlertScheduler):
    """Celery ETA tasks, with task ids tracked in Redis so they can be revoked"""

    def __init__(self, redis=None):
        from gatepass.core.redis import redis_client
        self.redis = redis or redis_client

    async def schedule(self, pass_id: str, expected_return: datetime, now: Optional[datetime] = None) -> List[PlannedAlert]:
        from gatepass.workers.celery_tasks.gate_pass_tasks import send_time_alert

        await self.cancel(pass_id)
        now = ensure_utc(now) or utcnow()
        planned = plan_alerts(expected_return, now)
        deadline_iso = ensure_utc(expected_return).isoformat()

        task_ids = []
        for alert in planned:
            result = send_time_alert.apply_async(
                args=[pass_id, alert.alert_type.value, deadline_iso],
                eta=alert.fire_at,
            )
            task_ids.append(result.id)

        key = f"{ALERT_KEY_PREFIX}{pass_id}"
        if task_ids:
            await self.redis.sadd(key, *task_ids)
            ttl = int((ensure_utc(expected_return) - now).total_seconds()) + 3600
            await self.redis.expire(key, max(ttl, 60))
        logger.info(f"🔔 Scheduled {len(task_ids)} celery time alerts for gate pass {pass_id}")
        return planned

    async def cancel(self, pass_id: str) -> int:
        from gatepass.core.celery_app import celery_app

        key = f"{ALERT_KEY_PREFIX}{pass_id}"
        task_ids = await self.redis.smembers(key) or set()
        for task_id in task_ids:
            celery_app.control.revoke(task_id)
        await self.redis.delete(key)
        if task_ids:
            logger.info(f"🗑️ Revoked {len(task_ids)} celery alerts for gate pass {pass_id}")
        return len(task_ids)


_scheduler: Optional[AlertScheduler] = None


def get_alert_scheduler() -> AlertScheduler:
    """Process-wide scheduler chosen by ALERT_BACKEND"""
    global _scheduler
    if _scheduler is None:
        if settings.ALERT_BACKEND == "celery":
            _scheduler = CeleryAlertScheduler()
        else:
            _scheduler = InProcessAlertScheduler()
    return _scheduler
