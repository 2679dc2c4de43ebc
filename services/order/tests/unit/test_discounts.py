from decimal import Decimal

import pytest
from pydantic import ValidationError

from order.discounts import (
    DiscountRules,
    calculate_discount,
    calculate_discount_for_customer,
    loyalty_discount_percentage,
    segment_discount_percentage,
    volume_discount_percentage,
)
from order.models import Customer, CustomerSegment


@pytest.mark.unit
def test_new_customer_small_order():
    result = calculate_discount(CustomerSegment.NEW, 0, Decimal("100"))

    assert result.total_discount_amount == Decimal("10")
    assert result.final_amount == Decimal("90")
    assert result.total_discount_percentage == Decimal("0.10")
    assert result.has_any_discount
    assert result.breakdown.segment_discount.qualified
    assert not result.breakdown.loyalty_discount.qualified
    assert not result.breakdown.volume_discount.qualified
    assert not result.breakdown.max_discount_cap_applied


@pytest.mark.unit
def test_premium_loyal_large_order_stacks_all_rules():
    result = calculate_discount(CustomerSegment.PREMIUM, 8, Decimal("600"))

    breakdown = result.breakdown
    assert breakdown.segment_discount.amount == Decimal("90")
    assert breakdown.loyalty_discount.amount == Decimal("30")
    assert breakdown.volume_discount.amount == Decimal("18")
    assert result.total_discount_amount == Decimal("138")
    assert result.final_amount == Decimal("462")
    assert not breakdown.max_discount_cap_applied


@pytest.mark.unit
def test_rules_apply_to_full_subtotal_not_each_other():
    result = calculate_discount(CustomerSegment.STANDARD, 5, Decimal("1000"))

    parts = result.breakdown
    assert (
        parts.segment_discount.amount
        + parts.loyalty_discount.amount
        + parts.volume_discount.amount
        == result.total_discount_amount
    )
    assert result.total_discount_amount == Decimal("130")


@pytest.mark.unit
def test_cap_limits_total_discount():
    rules = DiscountRules(
        segment_rates={CustomerSegment.PREMIUM: Decimal("0.20")},
        loyalty_rate=Decimal("0.05"),
        volume_rate=Decimal("0.03"),
    )

    result = calculate_discount(CustomerSegment.PREMIUM, 10, Decimal("1000"), rules)

    assert result.total_discount_amount == Decimal("250")
    assert result.final_amount == Decimal("750")
    assert result.total_discount_percentage == Decimal("0.25")
    assert result.breakdown.max_discount_cap_applied


@pytest.mark.unit
@pytest.mark.parametrize(
    "order_count,expected",
    [(0, Decimal("0")), (4, Decimal("0")), (5, Decimal("0.05")), (20, Decimal("0.05"))],
)
def test_loyalty_threshold(order_count, expected):
    assert loyalty_discount_percentage(order_count) == expected


@pytest.mark.unit
@pytest.mark.parametrize(
    "subtotal,expected",
    [
        (Decimal("499.99"), Decimal("0")),
        (Decimal("500"), Decimal("0.03")),
        (Decimal("2500"), Decimal("0.03")),
    ],
)
def test_volume_threshold(subtotal, expected):
    assert volume_discount_percentage(subtotal) == expected


@pytest.mark.unit
def test_segment_rates():
    assert segment_discount_percentage(CustomerSegment.NEW) == Decimal("0.10")
    assert segment_discount_percentage("Standard") == Decimal("0.05")
    assert segment_discount_percentage(CustomerSegment.PREMIUM) == Decimal("0.15")
    assert segment_discount_percentage("Gold") == Decimal("0")
    assert segment_discount_percentage(None) == Decimal("0")


@pytest.mark.unit
def test_unknown_segment_earns_no_segment_discount():
    result = calculate_discount("Gold", 0, Decimal("100"))

    assert result.total_discount_amount == Decimal("0")
    assert result.final_amount == Decimal("100")
    assert result.breakdown.segment_discount.description == "No segment discount"
    assert not result.has_any_discount


@pytest.mark.unit
@pytest.mark.parametrize("subtotal", [Decimal("0"), Decimal("-5")])
def test_non_positive_subtotal_has_no_breakdown(subtotal):
    result = calculate_discount(CustomerSegment.PREMIUM, 10, subtotal)

    assert result.total_discount_amount == Decimal("0")
    assert result.total_discount_percentage == Decimal("0")
    assert result.final_amount == subtotal
    assert result.breakdown.segment_discount is None
    assert result.breakdown.loyalty_discount is None
    assert result.breakdown.volume_discount is None


@pytest.mark.unit
def test_descriptions_explain_missing_rules():
    result = calculate_discount(CustomerSegment.STANDARD, 2, Decimal("100"))

    assert "after 5 orders (you have 2)" in result.breakdown.loyalty_discount.description
    assert "$500.00" in result.breakdown.volume_discount.description


@pytest.mark.unit
def test_result_is_immutable():
    result = calculate_discount(CustomerSegment.NEW, 0, Decimal("100"))

    with pytest.raises(ValidationError):
        result.total_discount_amount = Decimal("0")


@pytest.mark.unit
def test_customer_history_drives_loyalty(loyal_history):
    customer = Customer(
        id=3,
        name="Premium Pat",
        email="pat@example.com",
        segment=CustomerSegment.PREMIUM,
        orders=loyal_history,
    )

    result = calculate_discount_for_customer(customer, Decimal("600"))

    assert customer.total_orders_count == 8
    assert result.breakdown.loyalty_discount.order_count == 8
    assert result.total_discount_amount == Decimal("138")
