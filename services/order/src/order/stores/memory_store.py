# order/src/order/stores/memory_store.py
"""
Process-local store used by the service and the tests.

Reads only ever see committed state and hand out deep copies. ``save_*``
calls stage copies; ``commit_changes`` swaps them in under one lock.
"""

import threading
from typing import Any, Dict, List, Optional

import pandas as pd
from libs.oms_shared.logging import get_logger

from ..interfaces import OrderStoreInterface, StoreError
from ..models import Customer, Order, Product

logger = get_logger(__name__)


def _read_records(csv_path: str) -> List[Dict[str, Any]]:
    """Read a seed CSV as plain dicts; blank cells are left out so model defaults apply."""
    try:
        # Everything as text so prices keep their exact decimal form
        df = pd.read_csv(csv_path, dtype=str, keep_default_na=False)
    except (FileNotFoundError, pd.errors.EmptyDataError, pd.errors.ParserError) as e:
        raise StoreError(f"Cannot read seed data from {csv_path}: {e}") from e

    return [
        {column: value for column, value in row.items() if value != ""}
        for row in df.to_dict(orient="records")
    ]


class InMemoryOrderStore(OrderStoreInterface):
    """Dictionary-backed unit of work over customers, products and orders."""

    def __init__(
        self,
        customers: Optional[List[Customer]] = None,
        products: Optional[List[Product]] = None,
        orders: Optional[List[Order]] = None,
    ):
        self._lock = threading.Lock()
        self._customers: Dict[int, Customer] = {}
        self._products: Dict[int, Product] = {}
        self._orders: Dict[int, Order] = {}
        self._staged_customers: Dict[int, Customer] = {}
        self._staged_products: Dict[int, Product] = {}
        self._staged_orders: Dict[int, Order] = {}
        self._next_ids = {"customer": 1, "product": 1, "order": 1}

        for customer in customers or []:
            customer = self._with_id("customer", customer)
            self._customers[customer.id] = customer.model_copy(
                update={"orders": []}, deep=True
            )
        for product in products or []:
            product = self._with_id("product", product)
            self._products[product.id] = product.model_copy(deep=True)
        for order in orders or []:
            order = self._with_id("order", order)
            self._orders[order.id] = order.model_copy(deep=True)

    @classmethod
    def from_csv(cls, customers_path: str, products_path: str) -> "InMemoryOrderStore":
        """
        Seed a store from customer and product CSV files.

        Rows that fail validation are skipped with a warning.

        Raises:
            StoreError: If either file cannot be read
        """
        logger.info(
            f"Seeding order store from {customers_path} and {products_path}"
        )
        customers = cls._validate_rows(Customer, _read_records(customers_path))
        products = cls._validate_rows(Product, _read_records(products_path))
        logger.info(f"Loaded {len(customers)} customers and {len(products)} products")
        return cls(customers=customers, products=products)

    @staticmethod
    def _validate_rows(model, records: List[Dict[str, Any]]) -> List:
        items = []
        for idx, record in enumerate(records):
            try:
                items.append(model.model_validate(record))
            except ValueError as e:
                logger.warning(f"Skipping invalid {model.__name__} row {idx}: {e}")
        return items

    def _with_id(self, kind: str, entity):
        """Assign the next id to new entities and keep the counter ahead of seeded ids."""
        if entity.id is None:
            entity = entity.model_copy(update={"id": self._next_ids[kind]})
        self._next_ids[kind] = max(self._next_ids[kind], entity.id + 1)
        return entity

    def _attach_orders(self, customer: Customer) -> Customer:
        history = sorted(
            (o for o in self._orders.values() if o.customer_id == customer.id),
            key=lambda o: (o.order_date, o.id),
        )
        return customer.model_copy(update={"orders": history}, deep=True)

    # ---------------------------------------------------------------------
    # Orders
    # ---------------------------------------------------------------------

    async def load_order(self, order_id: int) -> Optional[Order]:
        with self._lock:
            order = self._orders.get(order_id)
            return order.model_copy(deep=True) if order is not None else None

    async def load_all_orders(self) -> List[Order]:
        with self._lock:
            return [o.model_copy(deep=True) for o in self._orders.values()]

    async def load_orders_by_customer(self, customer_id: int) -> List[Order]:
        with self._lock:
            orders = [o for o in self._orders.values() if o.customer_id == customer_id]
            orders.sort(key=lambda o: (o.order_date, o.id))
            return [o.model_copy(deep=True) for o in orders]

    async def save_order(self, order: Order) -> Order:
        with self._lock:
            staged = self._with_id("order", order).model_copy(deep=True)
            self._staged_orders[staged.id] = staged
            return staged.model_copy(deep=True)

    async def count_orders(self) -> int:
        with self._lock:
            return len(self._orders)

    # ---------------------------------------------------------------------
    # Customers
    # ---------------------------------------------------------------------

    async def load_customer(self, customer_id: int) -> Optional[Customer]:
        with self._lock:
            customer = self._customers.get(customer_id)
            return self._attach_orders(customer) if customer is not None else None

    async def load_all_customers(self) -> List[Customer]:
        with self._lock:
            return [self._attach_orders(c) for c in self._customers.values()]

    async def save_customer(self, customer: Customer) -> Customer:
        with self._lock:
            staged = self._with_id("customer", customer).model_copy(
                update={"orders": []}, deep=True
            )
            self._staged_customers[staged.id] = staged
            return staged.model_copy(deep=True)

    # ---------------------------------------------------------------------
    # Products
    # ---------------------------------------------------------------------

    async def load_product(self, product_id: int) -> Optional[Product]:
        with self._lock:
            product = self._products.get(product_id)
            return product.model_copy(deep=True) if product is not None else None

    async def load_all_products(self) -> List[Product]:
        with self._lock:
            return [p.model_copy(deep=True) for p in self._products.values()]

    async def save_product(self, product: Product) -> Product:
        with self._lock:
            staged = self._with_id("product", product).model_copy(deep=True)
            self._staged_products[staged.id] = staged
            return staged.model_copy(deep=True)

    # ---------------------------------------------------------------------
    # Unit of work
    # ---------------------------------------------------------------------

    @property
    def has_pending_changes(self) -> bool:
        with self._lock:
            return bool(
                self._staged_customers or self._staged_products or self._staged_orders
            )

    async def commit_changes(self) -> int:
        with self._lock:
            written = (
                len(self._staged_customers)
                + len(self._staged_products)
                + len(self._staged_orders)
            )
            self._customers.update(self._staged_customers)
            self._products.update(self._staged_products)
            self._orders.update(self._staged_orders)
            self._clear_staged()

        logger.debug(f"Committed {written} staged entities")
        return written

    async def rollback(self) -> None:
        with self._lock:
            self._clear_staged()
        logger.debug("Discarded staged changes")

    def _clear_staged(self) -> None:
        self._staged_customers.clear()
        self._staged_products.clear()
        self._staged_orders.clear()

    async def health_check(self) -> bool:
        return True
