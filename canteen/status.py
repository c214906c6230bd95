"""
Order status lifecycle.

Pending -> Preparing -> Ready -> Completed, strictly forward, one step at a
time. No I/O here; callers decide what to do with a rejected transition.
"""

from enum import Enum
from typing import Optional, Union

from .errors import InvalidTransitionError, UnknownStatusError


class OrderStatus(str, Enum):
    PENDING = "Pending"
    PREPARING = "Preparing"
    READY = "Ready"
    COMPLETED = "Completed"


LIFECYCLE = (
    OrderStatus.PENDING,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.COMPLETED,
)
INITIAL_STATUS = OrderStatus.PENDING
TERMINAL_STATUS = OrderStatus.COMPLETED

# labels the old kitchen screens submitted
_ALIASES = {
    "placed": OrderStatus.PENDING,
    "ready for pickup": OrderStatus.READY,
}


def parse_status(value: Union[str, OrderStatus]) -> OrderStatus:
    """Turn a submitted status label into an OrderStatus (case-insensitive)."""
    if isinstance(value, OrderStatus):
        return value
    label = (value or "").strip().lower()
    for status in LIFECYCLE:
        if status.value.lower() == label:
            return status
    if label in _ALIASES:
        return _ALIASES[label]
    raise UnknownStatusError(f"Unknown order status: {value!r}")


def next_status(current: OrderStatus) -> Optional[OrderStatus]:
    """Immediate successor of ``current``, or None for the terminal state."""
    idx = LIFECYCLE.index(current)
    if idx + 1 < len(LIFECYCLE):
        return LIFECYCLE[idx + 1]
    return None


def is_valid_transition(current: OrderStatus, requested: OrderStatus) -> bool:
    return requested is not None and next_status(current) == requested


def check_transition(current: OrderStatus, requested: OrderStatus) -> OrderStatus:
    if not is_valid_transition(current, requested):
        raise InvalidTransitionError(current, requested)
    return requested
