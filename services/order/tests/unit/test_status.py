from datetime import timedelta

import pytest

from order.models import OrderStatus
from order.status import (
    VALID_TRANSITIONS,
    apply_transition,
    is_terminal,
    is_valid_transition,
    transition_error_message,
    valid_next_statuses,
)


@pytest.fixture
def pending_order(order_factory, now):
    return order_factory(1, 1, [(2, "Mouse", 1, "25.00")], order_date=now - timedelta(days=1))


@pytest.mark.unit
@pytest.mark.parametrize(
    "current,new",
    [
        (OrderStatus.PENDING, OrderStatus.SHIPPED),
        (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
        (OrderStatus.SHIPPED, OrderStatus.CANCELLED),
    ],
)
def test_allowed_transitions(current, new):
    assert is_valid_transition(current, new)


@pytest.mark.unit
@pytest.mark.parametrize(
    "current,new",
    [
        (OrderStatus.PENDING, OrderStatus.DELIVERED),
        (OrderStatus.PENDING, OrderStatus.CANCELLED),
        (OrderStatus.SHIPPED, OrderStatus.PENDING),
        (OrderStatus.DELIVERED, OrderStatus.CANCELLED),
        (OrderStatus.CANCELLED, OrderStatus.SHIPPED),
        (OrderStatus.PENDING, OrderStatus.PENDING),
    ],
)
def test_rejected_transitions(current, new):
    assert not is_valid_transition(current, new)


@pytest.mark.unit
def test_valid_next_statuses_follow_table_order():
    assert valid_next_statuses(OrderStatus.PENDING) == [OrderStatus.SHIPPED]
    assert valid_next_statuses(OrderStatus.SHIPPED) == [
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    ]
    assert valid_next_statuses(OrderStatus.DELIVERED) == []
    assert valid_next_statuses(OrderStatus.CANCELLED) == []


@pytest.mark.unit
def test_every_status_has_a_table_entry():
    assert set(VALID_TRANSITIONS) == set(OrderStatus)
    assert is_terminal(OrderStatus.DELIVERED)
    assert is_terminal(OrderStatus.CANCELLED)
    assert not is_terminal(OrderStatus.PENDING)


@pytest.mark.unit
def test_error_messages():
    assert "already in Pending status" in transition_error_message(
        OrderStatus.PENDING, OrderStatus.PENDING
    )

    message = transition_error_message(OrderStatus.PENDING, OrderStatus.DELIVERED)
    assert "Cannot change status from Pending to Delivered" in message
    assert "Valid transitions are: Shipped" in message

    message = transition_error_message(OrderStatus.SHIPPED, OrderStatus.PENDING)
    assert "Valid transitions are: Delivered, Cancelled" in message

    assert "cannot be changed to any other status" in transition_error_message(
        OrderStatus.DELIVERED, OrderStatus.SHIPPED
    )


@pytest.mark.unit
def test_apply_transition_ships_order(pending_order, now):
    result = apply_transition(pending_order, OrderStatus.SHIPPED, "Left warehouse", now=now)

    assert result.is_success
    assert result.previous_status == OrderStatus.PENDING
    assert result.new_status == OrderStatus.SHIPPED
    assert result.transition_date == now
    assert "successfully updated from Pending to Shipped" in result.message

    assert pending_order.status == OrderStatus.SHIPPED
    assert pending_order.shipped_date == now
    assert pending_order.updated_at == now
    assert pending_order.delivered_date is None
    assert pending_order.notes == "Status Update: Left warehouse"


@pytest.mark.unit
def test_rejected_transition_leaves_order_untouched(pending_order, now):
    before = pending_order.model_copy(deep=True)

    result = apply_transition(pending_order, OrderStatus.DELIVERED, "skip ahead", now=now)

    assert not result.is_success
    assert result.errors == [result.message]
    assert "Shipped" in result.message
    assert pending_order == before


@pytest.mark.unit
def test_cancel_after_shipping_keeps_delivered_date_empty(pending_order, now):
    apply_transition(pending_order, OrderStatus.SHIPPED, now=now)
    result = apply_transition(
        pending_order, OrderStatus.CANCELLED, "Cancelled: damaged", now=now + timedelta(hours=2)
    )

    assert result.is_success
    assert pending_order.status == OrderStatus.CANCELLED
    assert pending_order.shipped_date == now
    assert pending_order.delivered_date is None


@pytest.mark.unit
def test_notes_accumulate_as_audit_trail(pending_order, now):
    pending_order.notes = "Leave at door"

    apply_transition(pending_order, OrderStatus.SHIPPED, "Courier A", now=now)
    apply_transition(pending_order, OrderStatus.DELIVERED, "Signed", now=now + timedelta(days=1))

    assert pending_order.notes.splitlines() == [
        "Leave at door",
        "Status Update: Courier A",
        "Status Update: Signed",
    ]


@pytest.mark.unit
def test_blank_notes_are_not_recorded(pending_order, now):
    apply_transition(pending_order, OrderStatus.SHIPPED, "   ", now=now)
    assert pending_order.notes is None


@pytest.mark.unit
def test_stamps_never_precede_order_date(order_factory, now):
    order = order_factory(1, 1, [(2, "Mouse", 1, "25.00")], order_date=now + timedelta(hours=1))

    apply_transition(order, OrderStatus.SHIPPED, now=now)

    assert order.shipped_date == order.order_date
    assert order.processing_time == timedelta(0)
