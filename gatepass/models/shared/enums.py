from enum import Enum

class UserRole(str, Enum):
    STAFF = "STAFF"
    HOD = "HOD"            # Head of Department
    CEO = "CEO"
    DIRECTOR = "DIRECTOR"
    SECURITY = "SECURITY"
    ADMIN = "ADMIN"

class GatePassStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CHECKED_OUT = "CHECKED_OUT"
    RETURNED = "RETURNED"

class GatePassAction(str, Enum):
    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    CHECK_OUT = "CHECK_OUT"
    CHECK_IN = "CHECK_IN"

class AlertType(str, Enum):
    WARNING = "WARNING"      # 5 minutes left
    CRITICAL = "CRITICAL"    # 1 minute left
    OVERDUE = "OVERDUE"

class NotificationStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"
