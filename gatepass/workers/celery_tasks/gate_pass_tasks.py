"""
Gate pass time alerts, delivered by the Celery worker at their ETA
"""
import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from gatepass.core.celery_app import celery_app
from gatepass.core.config import settings
from gatepass.models.shared.enums import AlertType

logger = logging.getLogger(__name__)

# Every task runs on a fresh event loop, so connections are never pooled across tasks
async_engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    future=True,
    poolclass=NullPool,
)

async_session_maker = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def run_async_task(coro):
    """Helper function to run async coroutines in Celery tasks"""
    loop = asyncio.new_event_loop()
    try:
        asyncio.set_event_loop(loop)
        return loop.run_until_complete(coro)
    except Exception as e:
        logger.error(f"Error in async task: {e}")
        raise
    finally:
        loop.close()


@celery_app.task(name="gatepass.send_time_alert", ignore_result=True)
def send_time_alert(pass_id: str, alert_type: str, expected_return_iso: str = None):
    """Deliver one warning/critical/overdue alert if the pass is still open"""
    async def _send():
        async with async_session_maker() as db:
            # Import inside function to avoid circular imports
            from gatepass.services.notification.alert_scheduler import deliver_time_alert

            delivered = await deliver_time_alert(db, pass_id, AlertType(alert_type), expected_return_iso)
            if delivered:
                return f"✅ {alert_type} alert sent for gate pass {pass_id}"
            return f"⏭️ {alert_type} alert skipped for gate pass {pass_id}"

    return run_async_task(_send())
