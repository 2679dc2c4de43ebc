# services/order/src/order/interfaces.py
"""
Storage-agnostic interfaces that define the contract between
business logic and storage implementations.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from .models import Customer, Order, Product


class StoreError(Exception):
    """
    Raised by store implementations when the backend fails.

    The order service never interprets these; they propagate to the caller.
    """


class OrderStoreInterface(ABC):
    """
    Abstract unit-of-work over customers, products and orders.
    Business logic depends only on this interface, not concrete implementations.

    ``save_*`` calls stage changes; nothing is visible to other readers until
    ``commit_changes`` persists everything staged since the last commit.
    """

    @abstractmethod
    async def load_order(self, order_id: int) -> Optional[Order]:
        """Return the order with its lines, or None."""

    @abstractmethod
    async def load_all_orders(self) -> List[Order]:
        """Return every committed order with its lines."""

    @abstractmethod
    async def load_orders_by_customer(self, customer_id: int) -> List[Order]:
        """Return the committed orders of one customer, oldest first."""

    @abstractmethod
    async def save_order(self, order: Order) -> Order:
        """
        Stage a new or updated order.

        New orders (``id is None``) get an id assigned; the returned order
        carries it.
        """

    @abstractmethod
    async def load_customer(self, customer_id: int) -> Optional[Customer]:
        """Return the customer with its committed orders attached, or None."""

    @abstractmethod
    async def load_all_customers(self) -> List[Customer]:
        """Return every customer with committed orders attached."""

    @abstractmethod
    async def save_customer(self, customer: Customer) -> Customer:
        """Stage a new or updated customer."""

    @abstractmethod
    async def load_product(self, product_id: int) -> Optional[Product]:
        """Return the product, or None."""

    @abstractmethod
    async def load_all_products(self) -> List[Product]:
        """Return every product."""

    @abstractmethod
    async def save_product(self, product: Product) -> Product:
        """Stage a new or updated product."""

    @abstractmethod
    async def commit_changes(self) -> int:
        """
        Atomically persist everything staged since the last commit.

        Returns:
            Number of entities written
        """

    @abstractmethod
    async def rollback(self) -> None:
        """Discard everything staged since the last commit."""

    @abstractmethod
    async def count_orders(self) -> int:
        """Number of committed orders."""

    @abstractmethod
    async def health_check(self) -> bool:
        """True if the backend is reachable."""
