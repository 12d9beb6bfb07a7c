"""
Order State Machine

This module is the SINGLE SOURCE OF TRUTH for all order status transitions.
OrderService.transition is the only executor; it looks up the side effects
for a transition here instead of branching on status values.

    PLACED -> ACCEPTED -> IN_MANUFACTURING -> DISPATCHED -> DELIVERED
       \\________\\______________\\_______________\\-> CANCELLED

DELIVERED and CANCELLED are terminal.
"""

from typing import Dict, List, Tuple

from orderledger.core.errors import InvalidStatusError
from orderledger.models.order import OrderStatus


# =============================================================================
# SIDE EFFECTS
# =============================================================================

class TransitionEffect:
    """Side-effect names executed by OrderService inside the transition's unit of work."""
    CREATE_MANUFACTURING_STAGES = "create_manufacturing_stages"
    RECEIVE_FULFILLED_GOODS = "receive_fulfilled_goods"


# =============================================================================
# TRANSITION RULES
# =============================================================================

# Forward path, one step at a time
_FORWARD_PATH: List[str] = [
    OrderStatus.PLACED.value,
    OrderStatus.ACCEPTED.value,
    OrderStatus.IN_MANUFACTURING.value,
    OrderStatus.DISPATCHED.value,
    OrderStatus.DELIVERED.value,
]

TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED.value, OrderStatus.CANCELLED.value})

ALL_STATUSES = frozenset(s.value for s in OrderStatus)

# (current_status, new_status) -> (action name, side effects)
ORDER_TRANSITIONS: Dict[Tuple[str, str], Tuple[str, Tuple[str, ...]]] = {
    (OrderStatus.PLACED.value, OrderStatus.ACCEPTED.value): ("Accept", ()),
    (OrderStatus.ACCEPTED.value, OrderStatus.IN_MANUFACTURING.value): (
        "Start Manufacturing",
        (TransitionEffect.CREATE_MANUFACTURING_STAGES,),
    ),
    (OrderStatus.IN_MANUFACTURING.value, OrderStatus.DISPATCHED.value): ("Dispatch", ()),
    (OrderStatus.DISPATCHED.value, OrderStatus.DELIVERED.value): (
        "Mark Delivered",
        (TransitionEffect.RECEIVE_FULFILLED_GOODS,),
    ),
}

# Cancel from every non-terminal state
for _status in _FORWARD_PATH:
    if _status not in TERMINAL_STATUSES:
        ORDER_TRANSITIONS[(_status, OrderStatus.CANCELLED.value)] = ("Cancel", ())


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def normalize_status(status) -> str:
    """Accept an OrderStatus or a case-insensitive string; return the stored value."""
    if isinstance(status, OrderStatus):
        return status.value
    if not isinstance(status, str):
        raise InvalidStatusError(f"Invalid status: {status!r}")
    value = status.strip().upper()
    if value not in ALL_STATUSES:
        raise InvalidStatusError(
            f"Invalid status '{status}'. Valid statuses: {', '.join(sorted(ALL_STATUSES))}"
        )
    return value


def is_terminal(status: str) -> bool:
    """Is this a terminal (final) state?"""
    return status in TERMINAL_STATUSES


def can_transition(current_status: str, new_status: str) -> bool:
    """Check if a transition is allowed."""
    return (current_status, new_status) in ORDER_TRANSITIONS


def get_allowed_transitions(current_status: str) -> List[str]:
    """Get list of statuses that can be transitioned to from current status."""
    return [to for (frm, to) in ORDER_TRANSITIONS if frm == current_status]


def get_transition_action(current_status: str, new_status: str) -> str:
    """Get human-readable action name for a transition."""
    entry = ORDER_TRANSITIONS.get((current_status, new_status))
    return entry[0] if entry else f"{current_status} -> {new_status}"


def get_transition_effects(current_status: str, new_status: str) -> Tuple[str, ...]:
    """Side effects bound to a transition (empty for plain status moves)."""
    entry = ORDER_TRANSITIONS.get((current_status, new_status))
    return entry[1] if entry else ()


def validate_transition(current_status: str, new_status: str) -> Tuple[str, ...]:
    """
    Validate a status transition and return its side effects.

    Raises:
        InvalidStatusError: unknown target, terminal source, self-transition,
            skipped or backward step
    """
    new_status = normalize_status(new_status)

    if is_terminal(current_status):
        raise InvalidStatusError(
            f"Order in '{current_status}' status cannot be modified. This is a terminal state."
        )

    if not can_transition(current_status, new_status):
        allowed = get_allowed_transitions(current_status)
        raise InvalidStatusError(
            f"Cannot change order from '{current_status}' to '{new_status}'. "
            f"Allowed transitions: {', '.join(allowed)}"
        )

    return get_transition_effects(current_status, new_status)


def describe_state_machine() -> List[str]:
    """Text rendering of the state machine (docs/debugging)."""
    lines = []
    for status in OrderStatus:
        transitions = get_allowed_transitions(status.value)
        if not transitions:
            lines.append(f"{status.value}: [TERMINAL STATE]")
            continue
        lines.append(f"{status.value}:")
        for target in transitions:
            effects = get_transition_effects(status.value, target)
            suffix = f" [{', '.join(effects)}]" if effects else ""
            lines.append(f"  -> {target} ({get_transition_action(status.value, target)}){suffix}")
    return lines


if __name__ == "__main__":
    print("\n".join(describe_state_machine()))
