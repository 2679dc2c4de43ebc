from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from order.models import Customer, Order, OrderLine, OrderStatus, Product


@pytest.mark.unit
@pytest.mark.parametrize(
    "stock,status",
    [(0, "Out of Stock"), (1, "Low Stock"), (10, "Low Stock"), (11, "In Stock")],
)
def test_product_stock_status(stock, status):
    product = Product(name="Cable", price=Decimal("5"), stock=stock)
    assert product.stock_status == status
    assert product.is_in_stock == (stock > 0)


@pytest.mark.unit
def test_order_totals():
    order = Order(
        customer_id=1,
        lines=[
            OrderLine(product_id=1, quantity=2, unit_price=Decimal("50"), discount_amount=Decimal("5")),
            OrderLine(product_id=2, quantity=1, unit_price=Decimal("15")),
        ],
        discount_amount=Decimal("11"),
    )

    assert order.lines[0].line_subtotal == Decimal("100")
    assert order.lines[0].line_total == Decimal("95")
    assert order.subtotal == Decimal("110")
    assert order.total_amount == Decimal("99")
    assert order.total_items_count == 3
    assert order.unique_products_count == 2
    assert order.has_discount
    assert order.discount_percentage == Decimal("10")


@pytest.mark.unit
def test_empty_order_has_zero_discount_percentage():
    order = Order(customer_id=1)
    assert order.subtotal == Decimal("0")
    assert order.discount_percentage == Decimal("0")


@pytest.mark.unit
def test_fulfillment_durations(now):
    order = Order(
        customer_id=1,
        status=OrderStatus.DELIVERED,
        order_date=now,
        shipped_date=now + timedelta(days=1),
        delivered_date=now + timedelta(days=3),
    )

    assert order.processing_time == timedelta(days=1)
    assert order.delivery_time == timedelta(days=2)
    assert order.total_fulfillment_time == timedelta(days=3)
    assert Order(customer_id=1).total_fulfillment_time is None


@pytest.mark.unit
def test_naive_datetimes_are_read_as_utc():
    order = Order(customer_id=1, order_date=datetime(2025, 1, 1, 9, 30))
    assert order.order_date.tzinfo == timezone.utc


@pytest.mark.unit
def test_customer_history_is_derived(loyal_history):
    customer = Customer(name="Pat", email="pat@example.com", orders=loyal_history)

    assert customer.total_orders_count == 8
    assert customer.total_spent == Decimal("200")
    assert customer.last_order_date == max(o.order_date for o in loyal_history)
    assert customer.is_frequent_customer
    assert not customer.is_new_customer
    assert "orders" not in customer.model_dump()
