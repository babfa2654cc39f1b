from gatepass.models.base import Base
from gatepass.models.auth.user import User
from gatepass.models.organization.department import Department
from gatepass.models.gate_pass.gate_pass import GatePass
from gatepass.models.gate_pass.gate_pass_event import GatePassEvent
from gatepass.models.alerts.notification_queue import NotificationQueue


__all__ = [
    "Base",
    "User",
    "Department",
    "GatePass",
    "GatePassEvent",
    "NotificationQueue",
]
