"""
Duration & overdue engine.

Pure functions over stored timestamps. Nothing here mutates a pass or reads
the wall clock; callers pass ``now`` explicitly.
"""
import logging
import math
from datetime import datetime, timedelta
from typing import Optional

from gatepass.core.config import settings
from gatepass.core.exceptions import ValidationError
from gatepass.models.shared.enums import GatePassStatus
from gatepass.utils.date_time import ensure_utc

logger = logging.getLogger(__name__)

OPEN_FOR_OVERDUE = (GatePassStatus.APPROVED, GatePassStatus.CHECKED_OUT)


def expected_return(request_time: datetime, duration_minutes: int) -> datetime:
    return ensure_utc(request_time) + timedelta(minutes=duration_minutes)


def round_minutes(delta: timedelta) -> int:
    """Round a time span to whole minutes, halves away from zero"""
    minutes = delta.total_seconds() / 60
    return int(math.floor(minutes + 0.5)) if minutes >= 0 else -int(math.floor(-minutes + 0.5))


def duration_from_expected_return(request_time: datetime, expected: datetime) -> int:
    """Whole minutes between submission and a client supplied return deadline"""
    request_time = ensure_utc(request_time)
    expected = ensure_utc(expected)
    if expected < request_time:
        raise ValidationError("Expected return time cannot be before the request time")
    return round_minutes(expected - request_time)


def enforce_bounds(duration_minutes: int, minimum: int, maximum: int, label: str = "Duration") -> int:
    """
    Apply the configured bound policy.

    ``reject`` raises ValidationError for out-of-range values; ``clamp`` pins
    them to the nearest bound and logs that it did so.
    """
    if minimum <= duration_minutes <= maximum:
        return duration_minutes

    if settings.DURATION_BOUND_POLICY == "clamp":
        clamped = min(max(duration_minutes, minimum), maximum)
        logger.warning(f"{label} {duration_minutes} min clamped to {clamped} min")
        return clamped

    raise ValidationError(f"{label} must be between {minimum} and {maximum} minutes")


def validate_submission_duration(duration_minutes: int) -> int:
    return enforce_bounds(
        duration_minutes,
        settings.STAFF_MIN_DURATION_MINUTES,
        settings.STAFF_MAX_DURATION_MINUTES,
        label="Requested duration",
    )


def validate_adjusted_duration(duration_minutes: int) -> int:
    return enforce_bounds(
        duration_minutes,
        settings.STAFF_MIN_DURATION_MINUTES,
        settings.APPROVER_MAX_DURATION_MINUTES,
        label="Adjusted duration",
    )


def is_overdue(gate_pass, now: datetime) -> bool:
    if gate_pass.status not in OPEN_FOR_OVERDUE:
        return False
    return ensure_utc(now) > ensure_utc(gate_pass.expected_return)


def minutes_overdue(gate_pass, now: datetime) -> int:
    if not is_overdue(gate_pass, now):
        return 0
    return int((ensure_utc(now) - ensure_utc(gate_pass.expected_return)).total_seconds() // 60)


def minutes_remaining(gate_pass, now: datetime) -> Optional[int]:
    if gate_pass.status not in OPEN_FOR_OVERDUE:
        return None
    remaining = (ensure_utc(gate_pass.expected_return) - ensure_utc(now)).total_seconds()
    return max(int(remaining // 60), 0)


def elapsed_minutes(gate_pass, now: datetime) -> Optional[int]:
    """Minutes outside the gate; undefined until checkout, frozen at check-in"""
    if gate_pass.out_time is None:
        return None
    end = gate_pass.in_time if gate_pass.in_time is not None else now
    return max(round_minutes(ensure_utc(end) - ensure_utc(gate_pass.out_time)), 0)


def total_duration_minutes(out_time: datetime, in_time: datetime) -> int:
    return max(round_minutes(ensure_utc(in_time) - ensure_utc(out_time)), 0)


def returned_late(gate_pass) -> bool:
    if gate_pass.status != GatePassStatus.RETURNED or gate_pass.in_time is None:
        return False
    return ensure_utc(gate_pass.in_time) > ensure_utc(gate_pass.expected_return)


def was_ever_overdue(gate_pass, now: datetime) -> bool:
    """Currently overdue, or already returned after the deadline"""
    return is_overdue(gate_pass, now) or returned_late(gate_pass)
