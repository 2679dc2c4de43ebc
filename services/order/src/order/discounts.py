# services/order/src/order/discounts.py
"""
Discount engine.

Three rules are evaluated independently against the full subtotal:

- segment: New 10%, Standard 5%, Premium 15%, anything else 0%
- loyalty: 5% once the customer has 5 or more orders
- volume: 3% for subtotals of 500 or more

Their amounts are added and the sum is capped at 25% of the subtotal. Rules
never compound on each other. All arithmetic is ``Decimal``.
"""

from decimal import Decimal
from typing import Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .models import (
    ZERO,
    Customer,
    CustomerSegment,
    DiscountBreakdown,
    DiscountResult,
    LoyaltyDiscount,
    SegmentDiscount,
    VolumeDiscount,
)

SegmentLike = Union[CustomerSegment, str, None]


class DiscountRules(BaseModel):
    """Rates and thresholds for the discount engine."""

    model_config = ConfigDict(frozen=True)

    segment_rates: Dict[CustomerSegment, Decimal] = Field(
        default_factory=lambda: {
            CustomerSegment.NEW: Decimal("0.10"),
            CustomerSegment.STANDARD: Decimal("0.05"),
            CustomerSegment.PREMIUM: Decimal("0.15"),
        }
    )
    loyalty_order_threshold: int = Field(5, ge=0)
    loyalty_rate: Decimal = Field(Decimal("0.05"), ge=0)
    volume_threshold: Decimal = Field(Decimal("500"), ge=0)
    volume_rate: Decimal = Field(Decimal("0.03"), ge=0)
    max_total_rate: Decimal = Field(Decimal("0.25"), ge=0, le=1)


DEFAULT_RULES = DiscountRules()

_SEGMENT_DESCRIPTIONS = {
    CustomerSegment.NEW: "New customer welcome discount",
    CustomerSegment.STANDARD: "Standard customer discount",
    CustomerSegment.PREMIUM: "Premium customer discount",
}


def _coerce_segment(segment: SegmentLike) -> Optional[CustomerSegment]:
    if isinstance(segment, CustomerSegment) or segment is None:
        return segment
    try:
        return CustomerSegment(segment)
    except ValueError:
        return None


def segment_discount_percentage(
    segment: SegmentLike, rules: DiscountRules = DEFAULT_RULES
) -> Decimal:
    return rules.segment_rates.get(_coerce_segment(segment), ZERO)


def loyalty_discount_percentage(
    order_count: int, rules: DiscountRules = DEFAULT_RULES
) -> Decimal:
    if order_count >= rules.loyalty_order_threshold:
        return rules.loyalty_rate
    return ZERO


def volume_discount_percentage(
    order_total: Decimal, rules: DiscountRules = DEFAULT_RULES
) -> Decimal:
    if order_total >= rules.volume_threshold:
        return rules.volume_rate
    return ZERO


def calculate_discount(
    segment: SegmentLike,
    order_count: int,
    subtotal: Union[Decimal, int, str],
    rules: Optional[DiscountRules] = None,
) -> DiscountResult:
    """
    Compute the capped discount for one order.

    Args:
        segment: Customer segment; unknown values earn no segment discount
        order_count: Orders the customer has placed before this one
        subtotal: Order subtotal before the order-level discount
        rules: Rates and thresholds, defaults to the standard policy

    Returns:
        Immutable DiscountResult. A non-positive subtotal yields a zero
        discount and no breakdown.
    """
    rules = rules or DEFAULT_RULES
    subtotal = Decimal(subtotal)

    if subtotal <= 0:
        return DiscountResult(
            order_total=subtotal,
            total_discount_amount=ZERO,
            final_amount=subtotal,
            total_discount_percentage=ZERO,
        )

    known_segment = _coerce_segment(segment)

    segment_rate = segment_discount_percentage(known_segment, rules)
    segment_part = SegmentDiscount(
        segment=known_segment.value if known_segment else None,
        percentage=segment_rate,
        amount=subtotal * segment_rate,
        qualified=segment_rate > 0,
        description=_SEGMENT_DESCRIPTIONS.get(known_segment, "No segment discount"),
    )

    loyalty_rate = loyalty_discount_percentage(order_count, rules)
    loyal = order_count >= rules.loyalty_order_threshold
    loyalty_part = LoyaltyDiscount(
        order_count=order_count,
        percentage=loyalty_rate,
        amount=subtotal * loyalty_rate,
        qualified=loyal,
        description=(
            f"Loyal customer discount (you have {order_count} orders)"
            if loyal
            else f"Loyalty discount available after "
            f"{rules.loyalty_order_threshold} orders (you have {order_count})"
        ),
    )

    volume_rate = volume_discount_percentage(subtotal, rules)
    large = subtotal >= rules.volume_threshold
    volume_part = VolumeDiscount(
        order_total=subtotal,
        percentage=volume_rate,
        amount=subtotal * volume_rate,
        qualified=large,
        description=(
            f"Volume discount for orders over ${rules.volume_threshold:.2f}"
            if large
            else f"Volume discount available for orders over "
            f"${rules.volume_threshold:.2f}"
        ),
    )

    total = segment_part.amount + loyalty_part.amount + volume_part.amount
    cap = subtotal * rules.max_total_rate
    capped = total > cap
    if capped:
        total = cap
    total = max(ZERO, total)

    return DiscountResult(
        order_total=subtotal,
        total_discount_amount=total,
        final_amount=subtotal - total,
        total_discount_percentage=total / subtotal,
        breakdown=DiscountBreakdown(
            segment_discount=segment_part,
            loyalty_discount=loyalty_part,
            volume_discount=volume_part,
            max_discount_cap_applied=capped,
        ),
    )


def calculate_discount_for_customer(
    customer: Customer,
    subtotal: Union[Decimal, int, str],
    rules: Optional[DiscountRules] = None,
) -> DiscountResult:
    """Discount for ``customer`` using its derived order history."""
    return calculate_discount(
        customer.segment, customer.total_orders_count, subtotal, rules
    )
