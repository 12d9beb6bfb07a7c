import pytest

from orderledger.core.errors import InvalidStatusError
from orderledger.models.order import OrderStatus
from orderledger.services import order_state_machine as sm


FORWARD = [
    ("PLACED", "ACCEPTED"),
    ("ACCEPTED", "IN_MANUFACTURING"),
    ("IN_MANUFACTURING", "DISPATCHED"),
    ("DISPATCHED", "DELIVERED"),
]


@pytest.mark.parametrize("current,target", FORWARD)
def test_forward_single_steps_are_allowed(current, target):
    assert sm.can_transition(current, target)
    sm.validate_transition(current, target)


@pytest.mark.parametrize("current", ["PLACED", "ACCEPTED", "IN_MANUFACTURING", "DISPATCHED"])
def test_cancel_from_any_non_terminal_status(current):
    assert sm.validate_transition(current, "CANCELLED") == ()
    assert sm.get_transition_action(current, "CANCELLED") == "Cancel"


@pytest.mark.parametrize(
    "current,target",
    [
        ("PLACED", "DISPATCHED"),        # skip
        ("PLACED", "DELIVERED"),         # skip
        ("DISPATCHED", "ACCEPTED"),      # backward
        ("IN_MANUFACTURING", "PLACED"),  # backward
        ("ACCEPTED", "ACCEPTED"),        # self
    ],
)
def test_skips_backward_and_self_moves_are_rejected(current, target):
    with pytest.raises(InvalidStatusError):
        sm.validate_transition(current, target)


@pytest.mark.parametrize("terminal", ["DELIVERED", "CANCELLED"])
@pytest.mark.parametrize("target", [s.value for s in OrderStatus])
def test_terminal_states_are_locked(terminal, target):
    assert sm.is_terminal(terminal)
    assert sm.get_allowed_transitions(terminal) == []
    with pytest.raises(InvalidStatusError):
        sm.validate_transition(terminal, target)


def test_unknown_status_is_rejected():
    with pytest.raises(InvalidStatusError):
        sm.validate_transition("PLACED", "SHIPPED")
    with pytest.raises(InvalidStatusError):
        sm.normalize_status(None)


def test_status_names_are_case_insensitive():
    assert sm.normalize_status(" accepted ") == "ACCEPTED"
    assert sm.normalize_status(OrderStatus.DISPATCHED) == "DISPATCHED"


def test_side_effects_are_bound_to_transitions():
    assert sm.get_transition_effects("ACCEPTED", "IN_MANUFACTURING") == (
        sm.TransitionEffect.CREATE_MANUFACTURING_STAGES,
    )
    assert sm.get_transition_effects("DISPATCHED", "DELIVERED") == (
        sm.TransitionEffect.RECEIVE_FULFILLED_GOODS,
    )
    assert sm.get_transition_effects("PLACED", "ACCEPTED") == ()
    assert sm.get_transition_effects("DISPATCHED", "CANCELLED") == ()


def test_allowed_transitions_from_placed():
    assert sorted(sm.get_allowed_transitions("PLACED")) == ["ACCEPTED", "CANCELLED"]


def test_describe_state_machine_lists_every_status():
    lines = sm.describe_state_machine()
    assert "DELIVERED: [TERMINAL STATE]" in lines
    assert "CANCELLED: [TERMINAL STATE]" in lines
    assert any("Mark Delivered" in line for line in lines)
