# services/order/tests/conftest.py
"""
Shared fixtures for order service tests: seeded stores and a controllable clock.
"""

import os
import sys
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

import pytest

os.environ["TESTING"] = "true"


# Configure Python path for testing
def setup_python_path():
    """Set up Python path to allow imports from both service and shared libs."""
    project_root = Path(__file__).parent.parent.parent.parent.absolute()
    order_src = Path(__file__).parent.parent / "src"

    paths_to_add = [str(order_src), str(project_root)]
    for path in paths_to_add:
        if path not in sys.path:
            sys.path.insert(0, path)


# Set up paths immediately when module is imported
setup_python_path()

from order.models import (  # noqa: E402
    Customer,
    CustomerSegment,
    Order,
    OrderLine,
    OrderStatus,
    Product,
)
from order.stores.memory_store import InMemoryOrderStore  # noqa: E402

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def customers():
    return [
        Customer(id=1, name="New Nina", email="nina@example.com", segment=CustomerSegment.NEW),
        Customer(
            id=2,
            name="Standard Sam",
            email="sam@example.com",
            segment=CustomerSegment.STANDARD,
        ),
        Customer(
            id=3,
            name="Premium Pat",
            email="pat@example.com",
            segment=CustomerSegment.PREMIUM,
        ),
    ]


@pytest.fixture
def products():
    return [
        Product(id=1, name="Laptop", price=Decimal("500.00"), stock=10),
        Product(id=2, name="Mouse", price=Decimal("25.00"), stock=100),
        Product(id=3, name="Keyboard", price=Decimal("100.00"), stock=2),
        Product(id=4, name="CRT Monitor", price=Decimal("200.00"), stock=5, is_active=False),
    ]


def make_order(
    order_id,
    customer_id,
    lines,
    discount="0",
    status=OrderStatus.PENDING,
    order_date=NOW,
    shipped_date=None,
    delivered_date=None,
):
    """Build a committed-looking order from (product_id, name, qty, unit_price) tuples."""
    return Order(
        id=order_id,
        customer_id=customer_id,
        status=status,
        lines=[
            OrderLine(
                product_id=product_id,
                product_name=name,
                quantity=quantity,
                unit_price=Decimal(unit_price),
            )
            for product_id, name, quantity, unit_price in lines
        ],
        discount_amount=Decimal(discount),
        order_date=order_date,
        shipped_date=shipped_date,
        delivered_date=delivered_date,
        created_at=order_date,
    )


@pytest.fixture
def order_factory():
    return make_order


@pytest.fixture
def store(customers, products):
    """Seeded store with no orders yet."""
    return InMemoryOrderStore(customers=customers, products=products)


@pytest.fixture
def loyal_history():
    """Eight delivered orders for the premium customer."""
    return [
        make_order(
            100 + i,
            3,
            [(2, "Mouse", 1, "25.00")],
            status=OrderStatus.DELIVERED,
            order_date=NOW - timedelta(days=90 - i),
            shipped_date=NOW - timedelta(days=89 - i),
            delivered_date=NOW - timedelta(days=88 - i),
        )
        for i in range(8)
    ]


@pytest.fixture
def loyal_store(customers, products, loyal_history):
    """Seeded store where the premium customer already has eight orders."""
    return InMemoryOrderStore(
        customers=customers, products=products, orders=loyal_history
    )


@pytest.fixture
def now():
    return NOW
