import pytest

from canteen.errors import InvalidTransitionError, UnknownStatusError
from canteen.status import (
    INITIAL_STATUS,
    LIFECYCLE,
    TERMINAL_STATUS,
    OrderStatus,
    check_transition,
    is_valid_transition,
    next_status,
    parse_status,
)


def test_lifecycle_order():
    assert INITIAL_STATUS is OrderStatus.PENDING
    assert TERMINAL_STATUS is OrderStatus.COMPLETED
    assert [next_status(s) for s in LIFECYCLE] == [
        OrderStatus.PREPARING,
        OrderStatus.READY,
        OrderStatus.COMPLETED,
        None,
    ]


@pytest.mark.parametrize("current", LIFECYCLE)
@pytest.mark.parametrize("requested", LIFECYCLE)
def test_only_the_immediate_successor_is_allowed(current, requested):
    expected = LIFECYCLE.index(requested) == LIFECYCLE.index(current) + 1
    assert is_valid_transition(current, requested) is expected


def test_check_transition_rejects_backwards_move():
    with pytest.raises(InvalidTransitionError) as excinfo:
        check_transition(OrderStatus.READY, OrderStatus.PREPARING)
    assert excinfo.value.current is OrderStatus.READY
    assert "Ready" in str(excinfo.value) and "Preparing" in str(excinfo.value)


def test_check_transition_returns_target():
    assert check_transition(OrderStatus.PENDING, OrderStatus.PREPARING) is OrderStatus.PREPARING


@pytest.mark.parametrize(
    "label, status",
    [
        ("Preparing", OrderStatus.PREPARING),
        ("  completed ", OrderStatus.COMPLETED),
        ("Ready for Pickup", OrderStatus.READY),
        ("Placed", OrderStatus.PENDING),
        (OrderStatus.READY, OrderStatus.READY),
    ],
)
def test_parse_status(label, status):
    assert parse_status(label) is status


@pytest.mark.parametrize("label", ["", "Cancelled", None])
def test_parse_status_rejects_unknown(label):
    with pytest.raises(UnknownStatusError):
        parse_status(label)
