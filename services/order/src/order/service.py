# services/order/src/order/service.py
"""
Order service: the orchestration layer between the HTTP app and the store.

Creation is all-or-nothing. Every line is validated before anything is
staged, and staged work is rolled back if persisting fails. Successful
mutations invalidate the analytics cache.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Union

from libs.oms_shared.logging import get_logger
from libs.oms_shared.metrics import Metrics

from .analytics import AnalyticsCache
from .discounts import DiscountRules, calculate_discount_for_customer
from .exceptions import NotFoundError, OrderValidationError
from .interfaces import OrderStoreInterface
from .models import (
    LOW_STOCK_THRESHOLD,
    AnalyticsSnapshot,
    CreateOrderRequest,
    DiscountResult,
    Order,
    OrderLine,
    OrderStatus,
    Product,
    TransitionResult,
    utcnow,
)
from .status import apply_transition, is_valid_transition, valid_next_statuses

logger = get_logger(__name__)


class OrderService:
    """Business operations over orders, backed by an ``OrderStoreInterface``."""

    def __init__(
        self,
        store: OrderStoreInterface,
        analytics: Optional[AnalyticsCache] = None,
        discount_rules: Optional[DiscountRules] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self._clock = clock or utcnow
        self.analytics = analytics or AnalyticsCache(store, clock=self._clock)
        self.discount_rules = discount_rules

    # ---------------------------------------------------------------------
    # Creation
    # ---------------------------------------------------------------------

    async def create_order(self, request: CreateOrderRequest) -> Order:
        """
        Create a Pending order with prices read from the catalogue.

        Raises:
            OrderValidationError: No lines, an inactive product, or not enough stock
            NotFoundError: Unknown customer or product
        """
        if not request.lines:
            raise OrderValidationError("Order must contain at least one item")

        customer = await self.store.load_customer(request.customer_id)
        if customer is None:
            raise NotFoundError("customer", request.customer_id)

        # Same product on several lines draws on one stock figure
        requested: Dict[int, int] = {}
        for line in request.lines:
            requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity

        products: Dict[int, Product] = {}
        for product_id, quantity in requested.items():
            product = await self.store.load_product(product_id)
            if product is None:
                raise NotFoundError("product", product_id)
            if not product.is_active:
                logger.warning(f"Order rejected: product {product_id} is inactive")
                raise OrderValidationError(f"Product {product.name} is not available")
            if product.stock < quantity:
                logger.warning(
                    f"Order rejected: product {product_id} has {product.stock} in stock, "
                    f"{quantity} requested"
                )
                raise OrderValidationError(
                    f"Insufficient stock for product {product.name}. "
                    f"Available: {product.stock}, Requested: {quantity}"
                )
            products[product_id] = product

        now = self._clock()
        order = Order(
            customer_id=customer.id,
            status=OrderStatus.PENDING,
            lines=[
                OrderLine(
                    product_id=line.product_id,
                    product_name=products[line.product_id].name,
                    quantity=line.quantity,
                    unit_price=products[line.product_id].price,
                )
                for line in request.lines
            ],
            notes=request.notes,
            shipping_address=request.shipping_address,
            order_date=now,
            created_at=now,
        )

        # Discount sees the history before this order
        discount = calculate_discount_for_customer(
            customer, order.subtotal, self.discount_rules
        )
        order.discount_amount = discount.total_discount_amount

        try:
            for product_id, quantity in requested.items():
                product = products[product_id]
                product.stock -= quantity
                product.updated_at = now
                await self.store.save_product(product)

            saved = await self.store.save_order(order)
            await self.store.commit_changes()
        except Exception:
            logger.error("Failed to persist new order, rolling back", exc_info=True)
            await self.store.rollback()
            raise

        self.analytics.invalidate()
        Metrics.counter("orders_created_total", {"segment": customer.segment.value})
        logger.info(
            f"Created order {saved.id} for customer {customer.id}: "
            f"subtotal {saved.subtotal}, discount {saved.discount_amount}"
        )
        return saved

    # ---------------------------------------------------------------------
    # Status changes
    # ---------------------------------------------------------------------

    async def change_status(
        self, order_id: int, new_status: OrderStatus, notes: Optional[str] = None
    ) -> TransitionResult:
        """Move an order along the status graph; failures come back as results."""
        order = await self.store.load_order(order_id)
        if order is None:
            return TransitionResult.failure(f"Order with ID {order_id} not found")

        result = apply_transition(order, new_status, notes, now=self._clock())
        if not result.is_success:
            return result

        try:
            await self.store.save_order(order)
            await self.store.commit_changes()
        except Exception:
            logger.error(
                f"Failed to persist status change for order {order_id}, rolling back",
                exc_info=True,
            )
            await self.store.rollback()
            raise
        self.analytics.invalidate()

        Metrics.counter(
            "order_status_changes_total",
            {"from": result.previous_status.value, "to": result.new_status.value},
        )
        logger.info(result.message)
        return result

    async def cancel_order(self, order_id: int, reason: str = "") -> TransitionResult:
        return await self.change_status(
            order_id, OrderStatus.CANCELLED, f"Cancelled: {reason}"
        )

    async def get_valid_next_statuses(self, order_id: int) -> List[OrderStatus]:
        order = await self.store.load_order(order_id)
        if order is None:
            return []
        return valid_next_statuses(order.status)

    async def can_transition_to(self, order_id: int, new_status: OrderStatus) -> bool:
        order = await self.store.load_order(order_id)
        if order is None:
            return False
        return is_valid_transition(order.status, new_status)

    # ---------------------------------------------------------------------
    # Queries
    # ---------------------------------------------------------------------

    async def get_order(self, order_id: int) -> Optional[Order]:
        return await self.store.load_order(order_id)

    async def get_all_orders(self) -> List[Order]:
        orders = await self.store.load_all_orders()
        return sorted(orders, key=lambda o: o.order_date, reverse=True)

    async def get_orders_by_customer(self, customer_id: int) -> List[Order]:
        """
        Raises:
            NotFoundError: Unknown customer
        """
        if await self.store.load_customer(customer_id) is None:
            raise NotFoundError("customer", customer_id)
        return await self.store.load_orders_by_customer(customer_id)

    async def get_orders_by_status(self, status: OrderStatus) -> List[Order]:
        orders = await self.store.load_all_orders()
        return [order for order in orders if order.status == status]

    async def preview_discount(
        self, customer_id: int, subtotal: Union[Decimal, int, str]
    ) -> DiscountResult:
        """
        Discount the customer would get on ``subtotal`` today. Nothing is stored.

        Raises:
            NotFoundError: Unknown customer
        """
        customer = await self.store.load_customer(customer_id)
        if customer is None:
            raise NotFoundError("customer", customer_id)
        return calculate_discount_for_customer(customer, subtotal, self.discount_rules)

    # ---------------------------------------------------------------------
    # Catalogue
    # ---------------------------------------------------------------------

    async def get_products(self) -> List[Product]:
        products = await self.store.load_all_products()
        return sorted(products, key=lambda p: p.id)

    async def get_product(self, product_id: int) -> Optional[Product]:
        return await self.store.load_product(product_id)

    async def get_low_stock_products(
        self, threshold: int = LOW_STOCK_THRESHOLD
    ) -> List[Product]:
        """Products still in stock but at or below ``threshold`` units."""
        return [p for p in await self.get_products() if 0 < p.stock <= threshold]

    async def get_out_of_stock_products(self) -> List[Product]:
        return [p for p in await self.get_products() if p.is_out_of_stock]

    async def update_product_stock(self, product_id: int, new_stock: int) -> Product:
        """
        Set a product's stock level.

        Raises:
            NotFoundError: Unknown product
            OrderValidationError: Negative stock
        """
        if new_stock < 0:
            raise OrderValidationError("Stock cannot be negative")
        product = await self.store.load_product(product_id)
        if product is None:
            raise NotFoundError("product", product_id)

        previous = product.stock
        product.stock = new_stock
        product.updated_at = self._clock()
        try:
            saved = await self.store.save_product(product)
            await self.store.commit_changes()
        except Exception:
            logger.error(
                f"Failed to persist stock for product {product_id}, rolling back",
                exc_info=True,
            )
            await self.store.rollback()
            raise

        logger.info(f"Stock for product {product_id} changed {previous} -> {new_stock}")
        return saved

    # ---------------------------------------------------------------------
    # Analytics
    # ---------------------------------------------------------------------

    async def get_analytics(self, force_refresh: bool = False) -> AnalyticsSnapshot:
        return await self.analytics.get_analytics(force_refresh)

    async def get_analytics_for_period(
        self, start: Union[date, datetime], end: Union[date, datetime]
    ) -> AnalyticsSnapshot:
        return await self.analytics.get_analytics_for_period(start, end)

    def invalidate_analytics(self) -> None:
        self.analytics.invalidate()
