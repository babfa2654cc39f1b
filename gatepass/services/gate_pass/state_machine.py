from typing import Dict, Tuple

from gatepass.core.exceptions import InvalidTransitionError
from gatepass.models.shared.enums import GatePassAction, GatePassStatus

# action -> (required source state, resulting state)
TRANSITIONS: Dict[GatePassAction, Tuple[GatePassStatus, GatePassStatus]] = {
    GatePassAction.APPROVE: (GatePassStatus.PENDING, GatePassStatus.APPROVED),
    GatePassAction.REJECT: (GatePassStatus.PENDING, GatePassStatus.REJECTED),
    GatePassAction.CHECK_OUT: (GatePassStatus.APPROVED, GatePassStatus.CHECKED_OUT),
    GatePassAction.CHECK_IN: (GatePassStatus.CHECKED_OUT, GatePassStatus.RETURNED),
}

TERMINAL_STATES = frozenset({GatePassStatus.REJECTED, GatePassStatus.RETURNED})
OPEN_STATES = frozenset({GatePassStatus.PENDING, GatePassStatus.APPROVED, GatePassStatus.CHECKED_OUT})
ACTIVE_STATES = frozenset({GatePassStatus.APPROVED, GatePassStatus.CHECKED_OUT})
FINALIZED_STATES = frozenset({GatePassStatus.APPROVED, GatePassStatus.CHECKED_OUT, GatePassStatus.RETURNED})

_ACTION_LABELS = {
    GatePassAction.APPROVE: "approve",
    GatePassAction.REJECT: "reject",
    GatePassAction.CHECK_OUT: "check out",
    GatePassAction.CHECK_IN: "check in",
}


def can_transition(current: GatePassStatus, action: GatePassAction) -> bool:
    return action in TRANSITIONS and TRANSITIONS[action][0] == current


def next_state(current: GatePassStatus, action: GatePassAction) -> GatePassStatus:
    """Resulting state of ``action`` from ``current``, or InvalidTransitionError"""
    if not can_transition(current, action):
        required = TRANSITIONS[action][0].value if action in TRANSITIONS else "n/a"
        raise InvalidTransitionError(
            f"Cannot {_ACTION_LABELS.get(action, action.value.lower())} a gate pass "
            f"in status {GatePassStatus(current).value} (requires {required})"
        )
    return TRANSITIONS[action][1]
