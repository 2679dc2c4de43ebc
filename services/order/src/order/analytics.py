# services/order/src/order/analytics.py
"""
Order analytics with an in-process cache.

``AnalyticsCache`` serves aggregate metrics for the whole order population
or for a window of days. Snapshots are recomputed from the store on a miss
and handed out as copies, so callers never share the cached instance.

The all-time snapshot is reused only while two independent checks both
pass:

- less than ``freshness_window`` has elapsed since the last mutation marker,
  which ``invalidate()`` moves to "now" and every recompute stamps;
- the entry's own ``absolute_ttl`` has not run out.

Period snapshots expire on their own schedule (longer for windows that ended
before today) and are not dropped by ``invalidate()``.
"""

import threading
import time
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from datetime import time as dt_time
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Tuple, Union

import pandas as pd
from libs.oms_shared.logging import get_logger
from libs.oms_shared.metrics import Metrics

from .exceptions import OrderValidationError
from .interfaces import OrderStoreInterface
from .models import (
    HUNDRED,
    ZERO,
    AnalyticsSnapshot,
    Customer,
    CustomerSpend,
    Order,
    OrderStatus,
    ProductSales,
    StatusBreakdown,
    as_utc,
    utcnow,
)

logger = get_logger(__name__)

DateLike = Union[date, datetime]
PeriodKey = Tuple[date, date]


@dataclass(frozen=True)
class AnalyticsSettings:
    """Cache windows for analytics snapshots."""

    freshness_window: timedelta = timedelta(minutes=5)
    absolute_ttl: timedelta = timedelta(minutes=15)
    past_period_ttl: timedelta = timedelta(hours=24)
    current_period_ttl: timedelta = timedelta(minutes=30)


@dataclass
class _CacheEntry:
    snapshot: AnalyticsSnapshot
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


# -------------------------------------------------------------------------
# Snapshot computation
# -------------------------------------------------------------------------


def format_duration(value: timedelta) -> str:
    """Render a duration the way dashboards show it ("2 days, 3 hours")."""
    hours = value.seconds // 3600
    minutes = (value.seconds % 3600) // 60
    if value.days >= 1:
        return f"{value.days} days, {hours} hours"
    if hours >= 1:
        return f"{hours} hours, {minutes} minutes"
    return f"{minutes} minutes"


def _status_breakdown(frame: pd.DataFrame) -> StatusBreakdown:
    total = len(frame)
    if total == 0:
        return StatusBreakdown()

    counts = frame["status"].value_counts()
    values = {}
    for status in OrderStatus:
        count = int(counts.get(status.value, 0))
        key = status.name.lower()
        values[f"{key}_orders"] = count
        values[f"{key}_percentage"] = Decimal(count) / Decimal(total) * HUNDRED
    return StatusBreakdown(**values)


def _average_fulfillment_time(orders: List[Order]) -> Optional[timedelta]:
    durations = [
        order.total_fulfillment_time
        for order in orders
        if order.status == OrderStatus.DELIVERED and order.delivered_date is not None
    ]
    if not durations:
        return None
    return pd.Series(durations).mean().to_pytimedelta()


def _top_selling_product(orders: List[Order]) -> Optional[ProductSales]:
    rows = [
        {
            "product_id": line.product_id,
            "product_name": line.product_name or "Unknown",
            "quantity": line.quantity,
        }
        for order in orders
        for line in order.lines
    ]
    if not rows:
        return None

    # sort=False keeps first-seen product order, so idxmax breaks ties by it
    grouped = (
        pd.DataFrame(rows)
        .groupby("product_id", sort=False)
        .agg(
            product_name=("product_name", "first"),
            total_quantity=("quantity", "sum"),
            times_ordered=("quantity", "count"),
        )
    )
    top_id = int(grouped["total_quantity"].idxmax())
    top = grouped.loc[top_id]

    revenue = sum(
        (
            line.line_total
            for order in orders
            for line in order.lines
            if line.product_id == top_id
        ),
        ZERO,
    )
    return ProductSales(
        product_id=top_id,
        product_name=str(top["product_name"]),
        total_quantity_sold=int(top["total_quantity"]),
        total_revenue=revenue,
        times_ordered=int(top["times_ordered"]),
    )


def _top_customer(customers: List[Customer]) -> Optional[CustomerSpend]:
    spenders = [c for c in customers if c.total_spent > 0]
    if not spenders:
        return None

    # max() keeps the first of equal spenders
    top = max(spenders, key=lambda c: c.total_spent)
    count = top.total_orders_count
    return CustomerSpend(
        customer_id=top.id,
        customer_name=top.name,
        customer_segment=top.segment.value,
        total_orders=count,
        total_spent=top.total_spent,
        average_order_value=top.total_spent / count if count else ZERO,
    )


def build_snapshot(
    orders: List[Order],
    customers: List[Customer],
    calculated_at: Optional[datetime] = None,
    period_start: Optional[datetime] = None,
    period_end: Optional[datetime] = None,
) -> AnalyticsSnapshot:
    """
    Aggregate ``orders`` into a snapshot.

    ``orders`` is the (already filtered) population; ``customers`` carry
    their full order history, which drives the top-customer pick regardless
    of any period filter. An empty population gives an all-zero snapshot.
    """
    values = {
        "total_orders": len(orders),
        "total_customers": len(customers),
        "calculated_at": calculated_at or utcnow(),
        "period_start": period_start,
        "period_end": period_end,
    }
    if not orders:
        return AnalyticsSnapshot(**values)

    revenue = sum((order.total_amount for order in orders), ZERO)
    values["total_revenue"] = revenue
    values["average_order_value"] = revenue / len(orders)
    values["total_discounts_given"] = sum(
        (order.discount_amount for order in orders), ZERO
    )

    discounted = [order.discount_percentage for order in orders if order.subtotal > 0]
    if discounted:
        values["average_discount_percentage"] = sum(discounted, ZERO) / len(discounted)

    frame = pd.DataFrame(
        {
            "order_id": [order.id for order in orders],
            "status": [order.status.value for order in orders],
            "items": [order.total_items_count for order in orders],
        }
    )
    values["average_items_per_order"] = float(frame["items"].mean())

    fulfillment = _average_fulfillment_time(orders)
    if fulfillment is not None:
        values["average_fulfillment_time"] = fulfillment
        values["average_fulfillment_time_formatted"] = format_duration(fulfillment)

    values["status_breakdown"] = _status_breakdown(frame)
    values["top_selling_product"] = _top_selling_product(orders)
    values["top_customer"] = _top_customer(customers)
    return AnalyticsSnapshot(**values)


# -------------------------------------------------------------------------
# Cache
# -------------------------------------------------------------------------


def _as_day(value: DateLike) -> date:
    if isinstance(value, datetime):
        return as_utc(value).date()
    return value


class AnalyticsCache:
    """
    Process-local analytics cache over an ``OrderStoreInterface``.

    Safe to share between concurrent requests: entry and marker access is
    serialized by a lock that is never held across a store call. Two readers
    missing at the same time may both recompute; the last write wins. A
    recompute that overlaps an ``invalidate()`` is returned to its caller but
    never cached.
    """

    def __init__(
        self,
        store: OrderStoreInterface,
        settings: Optional[AnalyticsSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.settings = settings or AnalyticsSettings()
        self._clock = clock or utcnow
        self._lock = threading.Lock()
        self._all_time: Optional[_CacheEntry] = None
        self._periods: Dict[PeriodKey, _CacheEntry] = {}
        self._last_mutated: Optional[datetime] = None
        self._generation = 0

    @property
    def last_mutated(self) -> Optional[datetime]:
        with self._lock:
            return self._last_mutated

    @property
    def cached_period_count(self) -> int:
        with self._lock:
            return len(self._periods)

    def invalidate(self) -> None:
        """Drop the all-time snapshot and mark the population as just mutated."""
        with self._lock:
            self._all_time = None
            self._last_mutated = self._clock()
            self._generation += 1
        logger.info("Analytics cache invalidated")

    def _fresh_all_time(self, now: datetime) -> Optional[AnalyticsSnapshot]:
        with self._lock:
            entry = self._all_time
            if entry is None:
                return None
            if entry.is_expired(now):
                self._all_time = None
                return None
            recently_marked = (
                self._last_mutated is not None
                and now - self._last_mutated < self.settings.freshness_window
            )
            return entry.snapshot if recently_marked else None

    async def get_analytics(self, force_refresh: bool = False) -> AnalyticsSnapshot:
        """
        Analytics over every order.

        Args:
            force_refresh: Skip the freshness checks and recompute

        Returns:
            A copy of the snapshot, ``is_from_cache`` telling whether it was
            recomputed for this call
        """
        if not force_refresh:
            cached = self._fresh_all_time(self._clock())
            if cached is not None:
                logger.info("Returning cached analytics data")
                Metrics.counter("analytics_cache_hits_total", {"scope": "all_time"})
                return cached.model_copy(update={"is_from_cache": True}, deep=True)

        Metrics.counter("analytics_cache_misses_total", {"scope": "all_time"})
        logger.info("Calculating fresh analytics data")
        with self._lock:
            generation = self._generation
        snapshot = await self._calculate()

        computed_at = self._clock()
        with self._lock:
            superseded = generation != self._generation
            if not superseded:
                self._all_time = _CacheEntry(
                    snapshot=snapshot,
                    expires_at=computed_at + self.settings.absolute_ttl,
                )
                self._last_mutated = computed_at

        if superseded:
            logger.info("Analytics invalidated during calculation, not caching")
            return snapshot.model_copy(deep=True)

        logger.info(
            f"Analytics cached for {self.settings.absolute_ttl.total_seconds() / 60:.0f} minutes"
        )
        return snapshot.model_copy(deep=True)

    async def get_analytics_for_period(
        self, start: DateLike, end: DateLike
    ) -> AnalyticsSnapshot:
        """
        Analytics over orders placed between two days, both inclusive.

        Args:
            start: First day of the window (a datetime is reduced to its UTC day)
            end: Last day of the window

        Raises:
            OrderValidationError: If ``start`` falls after ``end``
        """
        start_day, end_day = _as_day(start), _as_day(end)
        if start_day > end_day:
            raise OrderValidationError("Start date cannot be after end date")

        key = (start_day, end_day)
        now = self._clock()
        with self._lock:
            entry = self._periods.get(key)
            if entry is not None and entry.is_expired(now):
                del self._periods[key]
                entry = None

        if entry is not None:
            Metrics.counter("analytics_cache_hits_total", {"scope": "period"})
            return entry.snapshot.model_copy(update={"is_from_cache": True}, deep=True)

        Metrics.counter("analytics_cache_misses_total", {"scope": "period"})
        period_start = datetime.combine(start_day, dt_time.min, tzinfo=timezone.utc)
        period_end = datetime.combine(end_day, dt_time.max, tzinfo=timezone.utc)
        snapshot = await self._calculate(period_start, period_end)

        computed_at = self._clock()
        ttl = (
            self.settings.past_period_ttl
            if end_day < computed_at.date()
            else self.settings.current_period_ttl
        )
        with self._lock:
            self._periods = {
                k: v for k, v in self._periods.items() if not v.is_expired(computed_at)
            }
            self._periods[key] = _CacheEntry(
                snapshot=snapshot, expires_at=computed_at + ttl
            )

        return snapshot.model_copy(deep=True)

    async def _calculate(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> AnalyticsSnapshot:
        started = time.perf_counter()

        orders = await self.store.load_all_orders()
        customers = await self.store.load_all_customers()

        if start is not None or end is not None:
            orders = [
                order
                for order in orders
                if (start is None or order.order_date >= start)
                and (end is None or order.order_date <= end)
            ]

        snapshot = build_snapshot(
            orders,
            customers,
            calculated_at=self._clock(),
            period_start=start,
            period_end=end,
        )

        elapsed_ms = (time.perf_counter() - started) * 1000
        Metrics.histogram("analytics_compute_ms", elapsed_ms)
        logger.info(
            f"Analytics calculated in {elapsed_ms:.0f}ms for {len(orders)} orders"
        )
        return snapshot
