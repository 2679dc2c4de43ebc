# services/order/src/order/status.py
"""
Order status state machine.

The legal graph lives in one table; every check below is a lookup into it.
Delivered and Cancelled are terminal.
"""

from datetime import datetime
from typing import Dict, List, Optional, Tuple

from libs.oms_shared.logging import get_logger

from .models import Order, OrderStatus, TransitionResult, utcnow

logger = get_logger(__name__)

# Current status -> allowed next statuses, in declaration order
VALID_TRANSITIONS: Dict[OrderStatus, Tuple[OrderStatus, ...]] = {
    OrderStatus.PENDING: (OrderStatus.SHIPPED,),
    OrderStatus.SHIPPED: (OrderStatus.DELIVERED, OrderStatus.CANCELLED),
    OrderStatus.DELIVERED: (),
    OrderStatus.CANCELLED: (),
}


def is_valid_transition(current: OrderStatus, new: OrderStatus) -> bool:
    """True if ``new`` is a legal next status for ``current``."""
    if current == new:
        return False
    return new in VALID_TRANSITIONS.get(current, ())


def valid_next_statuses(current: OrderStatus) -> List[OrderStatus]:
    """Outgoing edges of ``current``; empty for terminal statuses."""
    return list(VALID_TRANSITIONS.get(current, ()))


def is_terminal(status: OrderStatus) -> bool:
    return not VALID_TRANSITIONS.get(status)


def transition_error_message(current: OrderStatus, new: OrderStatus) -> str:
    """Human-readable reason why ``current -> new`` is rejected."""
    if current == new:
        return f"Order is already in {current.value} status"

    if current not in VALID_TRANSITIONS:
        return f"Invalid current status: {current}"

    allowed = VALID_TRANSITIONS[current]
    if not allowed:
        return (
            f"Order with status {current.value} cannot be changed to any other status"
        )

    if new not in allowed:
        valid = ", ".join(status.value for status in allowed)
        return (
            f"Cannot change status from {current.value} to {new.value}. "
            f"Valid transitions are: {valid}"
        )

    return "Unknown error"


def apply_transition(
    order: Order,
    new_status: OrderStatus,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TransitionResult:
    """
    Move ``order`` to ``new_status`` in place.

    On success the status and ``updated_at`` change, ``shipped_date`` or
    ``delivered_date`` is stamped when entering Shipped or Delivered, and
    ``notes`` is appended to the order's audit trail. On failure the order is
    left untouched.

    Args:
        order: Order to mutate
        new_status: Target status
        notes: Optional note recorded with the change
        now: Transition time, defaults to the current UTC time

    Returns:
        TransitionResult with previous/new status or the rejection reason
    """
    previous = order.status
    if not is_valid_transition(previous, new_status):
        message = transition_error_message(previous, new_status)
        logger.warning(f"Rejected transition for order {order.id}: {message}")
        return TransitionResult.failure(message)

    now = now or utcnow()
    # Stamps never precede the order date.
    stamp = max(now, order.order_date)

    order.status = new_status
    order.updated_at = now
    if new_status == OrderStatus.SHIPPED:
        order.shipped_date = stamp
    elif new_status == OrderStatus.DELIVERED:
        order.delivered_date = stamp

    if notes and notes.strip():
        entry = f"Status Update: {notes}"
        order.notes = f"{order.notes}\n{entry}" if order.notes else entry

    return TransitionResult.success(
        previous,
        new_status,
        f"Order {order.id} status successfully updated from "
        f"{previous.value} to {new_status.value}",
        transition_date=now,
    )
