import pytest

from gatepass.core.exceptions import InvalidTransitionError
from gatepass.models.shared.enums import GatePassAction, GatePassStatus
from gatepass.services.gate_pass.state_machine import (
    TERMINAL_STATES, TRANSITIONS, can_transition, next_state,
)


class TestStateMachine:
    @pytest.mark.parametrize("current,action,expected", [
        (GatePassStatus.PENDING, GatePassAction.APPROVE, GatePassStatus.APPROVED),
        (GatePassStatus.PENDING, GatePassAction.REJECT, GatePassStatus.REJECTED),
        (GatePassStatus.APPROVED, GatePassAction.CHECK_OUT, GatePassStatus.CHECKED_OUT),
        (GatePassStatus.CHECKED_OUT, GatePassAction.CHECK_IN, GatePassStatus.RETURNED),
    ])
    def test_legal_transitions(self, current, action, expected):
        assert next_state(current, action) == expected

    def test_every_other_pair_is_illegal(self):
        for status in GatePassStatus:
            for action in TRANSITIONS:
                if TRANSITIONS[action][0] == status:
                    continue
                assert not can_transition(status, action)
                with pytest.raises(InvalidTransitionError):
                    next_state(status, action)

    def test_terminal_states_have_no_exits(self):
        for status in TERMINAL_STATES:
            assert not any(can_transition(status, action) for action in GatePassAction)

    def test_error_names_current_and_required_state(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            next_state(GatePassStatus.RETURNED, GatePassAction.CHECK_IN)
        assert "RETURNED" in exc_info.value.detail
        assert "CHECKED_OUT" in exc_info.value.detail
        assert exc_info.value.status_code == 409
