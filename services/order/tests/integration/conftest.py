# services/order/tests/integration/conftest.py
"""
HTTP-level fixtures: the FastAPI app with its service provider pointed at a
seeded in-memory store.
"""

import pytest
from fastapi.testclient import TestClient

from order.app import app, get_order_service
from order.service import OrderService


@pytest.fixture
def order_service(store):
    return OrderService(store)


@pytest.fixture
def client(order_service):
    app.dependency_overrides[get_order_service] = lambda: order_service
    yield TestClient(app)
    app.dependency_overrides.clear()
