# services/order/src/order/models.py
"""
Order service models: the order aggregate, customers and products it
references, and the value objects produced by the discount engine, the
status engine and the analytics cache.

Money is always ``Decimal``. Datetimes are timezone-aware UTC; naive values
coming from CSV seeds or callers are read as UTC.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
)

ZERO = Decimal("0")
HUNDRED = Decimal("100")
LOW_STOCK_THRESHOLD = 10


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes, convert aware ones."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class OrderStatus(str, Enum):
    PENDING = "Pending"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class CustomerSegment(str, Enum):
    NEW = "New"
    STANDARD = "Standard"
    PREMIUM = "Premium"


class _Timestamped(BaseModel):
    @field_validator(
        "created_at",
        "updated_at",
        "order_date",
        "shipped_date",
        "delivered_date",
        check_fields=False,
    )
    @classmethod
    def normalize_timezone(cls, v):
        return as_utc(v)


# -------------------------------------------------------------------------
# Catalogue and customers
# -------------------------------------------------------------------------


class Product(_Timestamped):
    """A sellable product with its current price and stock level."""

    id: Optional[int] = Field(None, description="Product identifier")
    name: str = Field(..., max_length=200, examples=["Laptop"])
    description: Optional[str] = Field(None, max_length=1000)
    price: Decimal = Field(..., gt=0, description="Current unit price")
    stock: int = Field(..., ge=0, description="Units available")
    category: Optional[str] = Field(None, max_length=50)
    sku: Optional[str] = Field(None, max_length=20)
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    @property
    def is_in_stock(self) -> bool:
        return self.stock > 0

    @property
    def is_low_stock(self) -> bool:
        return 0 < self.stock <= LOW_STOCK_THRESHOLD

    @property
    def is_out_of_stock(self) -> bool:
        return self.stock == 0

    @property
    def stock_status(self) -> str:
        if self.is_out_of_stock:
            return "Out of Stock"
        if self.is_low_stock:
            return "Low Stock"
        return "In Stock"


class OrderLine(BaseModel):
    """
    One product line of an order.

    ``unit_price`` is the product price captured when the order was created;
    later catalogue price changes do not touch it.
    """

    product_id: int
    product_name: Optional[str] = Field(
        None, description="Product name captured at order time"
    )
    quantity: int = Field(..., ge=1)
    unit_price: Decimal = Field(..., gt=0)
    discount_amount: Decimal = Field(ZERO, ge=0, description="Line-level discount")

    @computed_field
    @property
    def line_subtotal(self) -> Decimal:
        return self.quantity * self.unit_price

    @computed_field
    @property
    def line_total(self) -> Decimal:
        return self.line_subtotal - self.discount_amount


class Order(_Timestamped):
    """
    Order aggregate. Owns its lines; references its customer by id.

    ``notes`` doubles as the audit trail: status updates are appended on new
    lines, never replacing earlier entries.
    """

    id: Optional[int] = None
    customer_id: int
    status: OrderStatus = OrderStatus.PENDING
    lines: List[OrderLine] = Field(default_factory=list)
    discount_amount: Decimal = Field(ZERO, ge=0)
    notes: Optional[str] = Field(None, description="Free text plus status audit trail")
    shipping_address: Optional[str] = Field(None, max_length=200)
    order_date: datetime = Field(default_factory=utcnow)
    shipped_date: Optional[datetime] = None
    delivered_date: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    @computed_field
    @property
    def subtotal(self) -> Decimal:
        return sum((line.line_total for line in self.lines), ZERO)

    @computed_field
    @property
    def total_amount(self) -> Decimal:
        return self.subtotal - self.discount_amount

    @computed_field
    @property
    def total_items_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def unique_products_count(self) -> int:
        return len(self.lines)

    @property
    def has_discount(self) -> bool:
        return self.discount_amount > 0

    @property
    def discount_percentage(self) -> Decimal:
        """Order discount as a percentage (0-100) of the subtotal."""
        subtotal = self.subtotal
        if subtotal <= 0:
            return ZERO
        return self.discount_amount / subtotal * HUNDRED

    @property
    def processing_time(self) -> Optional[timedelta]:
        if self.shipped_date is None:
            return None
        return self.shipped_date - self.order_date

    @property
    def delivery_time(self) -> Optional[timedelta]:
        if self.shipped_date is None or self.delivered_date is None:
            return None
        return self.delivered_date - self.shipped_date

    @property
    def total_fulfillment_time(self) -> Optional[timedelta]:
        if self.delivered_date is None:
            return None
        return self.delivered_date - self.order_date


class Customer(_Timestamped):
    """
    A customer and, once loaded from a store, the orders placed so far.

    The order history is never stored on the customer itself; the store
    attaches committed orders on load and the totals below are derived from
    them on access.
    """

    id: Optional[int] = None
    name: str = Field(..., max_length=100)
    email: str = Field(..., max_length=255)
    segment: CustomerSegment = CustomerSegment.NEW
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None
    orders: List[Order] = Field(default_factory=list, exclude=True, repr=False)

    @property
    def total_orders_count(self) -> int:
        return len(self.orders)

    @property
    def total_spent(self) -> Decimal:
        return sum((order.total_amount for order in self.orders), ZERO)

    @property
    def last_order_date(self) -> Optional[datetime]:
        if not self.orders:
            return None
        return max(order.order_date for order in self.orders)

    @property
    def is_new_customer(self) -> bool:
        return self.total_orders_count == 0

    @property
    def is_frequent_customer(self) -> bool:
        return self.total_orders_count > 5


# -------------------------------------------------------------------------
# Discounts
# -------------------------------------------------------------------------


class SegmentDiscount(BaseModel):
    model_config = ConfigDict(frozen=True)

    segment: Optional[str] = None
    percentage: Decimal = ZERO
    amount: Decimal = ZERO
    qualified: bool = False
    description: str = ""


class LoyaltyDiscount(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_count: int = 0
    percentage: Decimal = ZERO
    amount: Decimal = ZERO
    qualified: bool = False
    description: str = ""


class VolumeDiscount(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_total: Decimal = ZERO
    percentage: Decimal = ZERO
    amount: Decimal = ZERO
    qualified: bool = False
    description: str = ""


class DiscountBreakdown(BaseModel):
    """Per-rule components. Components are None when no breakdown was computed."""

    model_config = ConfigDict(frozen=True)

    segment_discount: Optional[SegmentDiscount] = None
    loyalty_discount: Optional[LoyaltyDiscount] = None
    volume_discount: Optional[VolumeDiscount] = None
    max_discount_cap_applied: bool = False


class DiscountResult(BaseModel):
    """Capped discount for one order subtotal, with the rule-by-rule breakdown."""

    model_config = ConfigDict(frozen=True)

    order_total: Decimal
    total_discount_amount: Decimal = ZERO
    final_amount: Decimal = ZERO
    total_discount_percentage: Decimal = Field(
        ZERO, description="Discount as a fraction of the order total (0.25 = 25%)"
    )
    breakdown: DiscountBreakdown = Field(default_factory=DiscountBreakdown)

    @computed_field
    @property
    def has_any_discount(self) -> bool:
        return self.total_discount_amount > 0


# -------------------------------------------------------------------------
# Status transitions
# -------------------------------------------------------------------------


class TransitionResult(BaseModel):
    """Outcome of a status change attempt. Failures carry the reason."""

    is_success: bool
    message: str = ""
    previous_status: Optional[OrderStatus] = None
    new_status: Optional[OrderStatus] = None
    transition_date: Optional[datetime] = None
    errors: List[str] = Field(default_factory=list)

    @classmethod
    def success(
        cls,
        previous_status: OrderStatus,
        new_status: OrderStatus,
        message: str = "",
        transition_date: Optional[datetime] = None,
    ) -> "TransitionResult":
        return cls(
            is_success=True,
            message=message
            or f"Order status updated from {previous_status.value} to {new_status.value}",
            previous_status=previous_status,
            new_status=new_status,
            transition_date=transition_date or utcnow(),
        )

    @classmethod
    def failure(cls, error: str) -> "TransitionResult":
        return cls(is_success=False, message=error, errors=[error])


# -------------------------------------------------------------------------
# Analytics
# -------------------------------------------------------------------------


class StatusBreakdown(BaseModel):
    pending_orders: int = 0
    shipped_orders: int = 0
    delivered_orders: int = 0
    cancelled_orders: int = 0

    pending_percentage: Decimal = ZERO
    shipped_percentage: Decimal = ZERO
    delivered_percentage: Decimal = ZERO
    cancelled_percentage: Decimal = ZERO


class ProductSales(BaseModel):
    product_id: int
    product_name: str
    total_quantity_sold: int
    total_revenue: Decimal
    times_ordered: int


class CustomerSpend(BaseModel):
    customer_id: int
    customer_name: str
    customer_segment: str
    total_orders: int
    total_spent: Decimal
    average_order_value: Decimal


class AnalyticsSnapshot(BaseModel):
    """
    Aggregate metrics over the order population, or over one date window
    when ``period_start``/``period_end`` are set.
    """

    total_orders: int = 0
    total_customers: int = 0
    total_revenue: Decimal = ZERO
    average_order_value: Decimal = ZERO
    total_discounts_given: Decimal = ZERO
    average_discount_percentage: Decimal = ZERO
    average_items_per_order: float = 0.0
    average_fulfillment_time: Optional[timedelta] = None
    average_fulfillment_time_formatted: str = ""
    status_breakdown: StatusBreakdown = Field(default_factory=StatusBreakdown)
    top_selling_product: Optional[ProductSales] = None
    top_customer: Optional[CustomerSpend] = None
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    calculated_at: datetime = Field(default_factory=utcnow)
    is_from_cache: bool = False


# -------------------------------------------------------------------------
# Requests
# -------------------------------------------------------------------------


class OrderLineRequest(BaseModel):
    product_id: int
    quantity: int = Field(..., ge=1, examples=[2])


class CreateOrderRequest(BaseModel):
    """
    New order for an existing customer.

    Unit prices are not accepted from the caller; they are read from the
    catalogue at creation time.
    """

    customer_id: int = Field(..., examples=[1])
    lines: List[OrderLineRequest] = Field(
        ..., description="Products and quantities; at least one line"
    )
    notes: Optional[str] = Field(None, max_length=500)
    shipping_address: Optional[str] = Field(None, max_length=200)


class UpdateOrderStatusRequest(BaseModel):
    new_status: OrderStatus
    notes: Optional[str] = Field(None, max_length=500)


class CancelOrderRequest(BaseModel):
    reason: str = Field("", max_length=400)


class UpdateProductStockRequest(BaseModel):
    new_stock: int = Field(..., ge=0, examples=[25])


class CalculateDiscountRequest(BaseModel):
    customer_id: int
    order_total: Decimal = Field(..., gt=0)
