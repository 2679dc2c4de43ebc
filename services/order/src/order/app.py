# order-service/app.py
from datetime import date, timedelta
from typing import List, Optional

from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi_mcp import FastApiMCP
from libs.oms_shared.errors import bad_request_error, not_found_error, service_error
from libs.oms_shared.health import format_health_response
from libs.oms_shared.logging import get_logger
from libs.oms_shared.middleware import CorrelationIdMiddleware, MetricsMiddleware
from libs.oms_shared.models import HealthStatus

from .analytics import AnalyticsCache
from .config import config
from .exceptions import NotFoundError, OrderValidationError
from .interfaces import StoreError
from .models import (
    LOW_STOCK_THRESHOLD,
    AnalyticsSnapshot,
    CalculateDiscountRequest,
    CancelOrderRequest,
    CreateOrderRequest,
    DiscountResult,
    Order,
    OrderStatus,
    Product,
    TransitionResult,
    UpdateOrderStatusRequest,
    UpdateProductStockRequest,
    utcnow,
)
from .service import OrderService
from .stores.memory_store import InMemoryOrderStore

logger = get_logger(__name__)


app = FastAPI(
    title="Order Service",
    description="Order lifecycle, discount pricing and cached analytics",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(MetricsMiddleware, exclude_paths=["/health", "/mcp"])
app.add_middleware(CorrelationIdMiddleware)


def get_order_service() -> OrderService:
    """
    Dependency provider for OrderService.
    Built once from the seed CSVs and kept on app.state; tests override it.
    """
    if not hasattr(app.state, "order_service"):
        store = InMemoryOrderStore.from_csv(
            config.customers_data_path, config.products_data_path
        )
        analytics = AnalyticsCache(store, settings=config.analytics_settings())
        app.state.order_service = OrderService(
            store,
            analytics=analytics,
            discount_rules=config.discount_rules(),
        )
    return app.state.order_service


def _transition_response(result: TransitionResult) -> JSONResponse:
    if result.is_success:
        status_code = status.HTTP_200_OK
    elif any("not found" in error for error in result.errors):
        status_code = status.HTTP_404_NOT_FOUND
    else:
        status_code = status.HTTP_400_BAD_REQUEST
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))


@app.exception_handler(StoreError)
async def store_exception_handler(request: Request, exc: StoreError):
    """Storage faults are logged in full and reported without internals."""
    logger.error(f"Store failure on {request.method} {request.url.path}", exc_info=exc)
    error = service_error("Storage is temporarily unavailable")
    return JSONResponse(status_code=error.status_code, content={"detail": error.detail})


@app.get("/health", tags=["orders"], operation_id="order_health")
async def health(service: OrderService = Depends(get_order_service)):
    """
    Service health check endpoint.
    Returns order count and store availability.
    """
    try:
        store_ready = await service.store.health_check()
        return format_health_response(
            checks={"store": store_ready},
            details={"order_count": await service.store.count_orders()},
            version=app.version,
        )
    except StoreError as e:
        logger.error("Health check failed", exc_info=e)
        return format_health_response(
            status=HealthStatus.ERROR,
            details={"error": "store unavailable"},
            version=app.version,
        )


# -------------------------------------------------------------------------
# Fixed paths first so they are not captured by /orders/{order_id}
# -------------------------------------------------------------------------


@app.get(
    "/orders/analytics",
    response_model=AnalyticsSnapshot,
    tags=["orders"],
    operation_id="get_order_analytics",
)
async def get_analytics(
    force_refresh: bool = Query(False, description="Bypass the cache and recompute"),
    service: OrderService = Depends(get_order_service),
):
    """
    Aggregate metrics over every order: revenue, discounts, status mix,
    fulfillment time, best-selling product and top customer.
    """
    return await service.get_analytics(force_refresh)


@app.get(
    "/orders/analytics/period",
    response_model=AnalyticsSnapshot,
    tags=["orders"],
    operation_id="get_order_analytics_for_period",
)
async def get_analytics_for_period(
    start_date: date = Query(..., description="First day, YYYY-MM-DD"),
    end_date: date = Query(..., description="Last day, YYYY-MM-DD"),
    service: OrderService = Depends(get_order_service),
):
    """Aggregate metrics over orders placed between two days, both inclusive."""
    if start_date > end_date:
        raise bad_request_error("Start date cannot be after end date")
    if end_date > utcnow().date() + timedelta(days=1):
        raise bad_request_error("End date cannot be in the future")

    try:
        return await service.get_analytics_for_period(start_date, end_date)
    except OrderValidationError as e:
        raise bad_request_error(e.message)


@app.post("/orders/analytics/refresh", tags=["orders"], operation_id="refresh_analytics")
async def refresh_analytics(service: OrderService = Depends(get_order_service)):
    service.invalidate_analytics()
    return {"message": "Analytics cache has been invalidated"}


@app.post(
    "/orders/calculate-discount",
    response_model=DiscountResult,
    tags=["orders"],
    operation_id="calculate_discount",
)
async def calculate_discount(
    request: CalculateDiscountRequest,
    service: OrderService = Depends(get_order_service),
):
    """Preview the discount a customer would get on an order total. Nothing is stored."""
    try:
        return await service.preview_discount(request.customer_id, request.order_total)
    except NotFoundError as e:
        raise not_found_error(e.entity_type, e.entity_id)


@app.get(
    "/orders/by-status/{order_status}",
    response_model=List[Order],
    tags=["orders"],
    operation_id="get_orders_by_status",
)
async def get_orders_by_status(
    order_status: OrderStatus,
    service: OrderService = Depends(get_order_service),
):
    return await service.get_orders_by_status(order_status)


@app.get(
    "/orders/customer/{customer_id}",
    response_model=List[Order],
    tags=["orders"],
    operation_id="get_orders_by_customer",
)
async def get_orders_by_customer(
    customer_id: int,
    service: OrderService = Depends(get_order_service),
):
    """Orders placed by one customer, oldest first."""
    try:
        return await service.get_orders_by_customer(customer_id)
    except NotFoundError as e:
        raise not_found_error(e.entity_type, e.entity_id)


# -------------------------------------------------------------------------
# Products
# -------------------------------------------------------------------------


@app.get(
    "/products",
    response_model=List[Product],
    tags=["products"],
    operation_id="get_all_products",
)
async def get_all_products(service: OrderService = Depends(get_order_service)):
    return await service.get_products()


@app.get(
    "/products/low-stock",
    response_model=List[Product],
    tags=["products"],
    operation_id="get_low_stock_products",
)
async def get_low_stock_products(
    threshold: int = Query(LOW_STOCK_THRESHOLD, ge=0, description="Stock threshold"),
    service: OrderService = Depends(get_order_service),
):
    """Products still in stock with at most ``threshold`` units left."""
    return await service.get_low_stock_products(threshold)


@app.get(
    "/products/out-of-stock",
    response_model=List[Product],
    tags=["products"],
    operation_id="get_out_of_stock_products",
)
async def get_out_of_stock_products(service: OrderService = Depends(get_order_service)):
    return await service.get_out_of_stock_products()


@app.get(
    "/products/{product_id}",
    response_model=Product,
    tags=["products"],
    operation_id="get_product_details",
)
async def get_product(product_id: int, service: OrderService = Depends(get_order_service)):
    product = await service.get_product(product_id)
    if product is None:
        raise not_found_error("product", product_id)
    return product


@app.patch(
    "/products/{product_id}/stock",
    response_model=Product,
    tags=["products"],
    operation_id="update_product_stock",
)
async def update_product_stock(
    product_id: int,
    request: UpdateProductStockRequest,
    service: OrderService = Depends(get_order_service),
):
    try:
        return await service.update_product_stock(product_id, request.new_stock)
    except NotFoundError as e:
        raise not_found_error(e.entity_type, e.entity_id)
    except OrderValidationError as e:
        raise bad_request_error(e.message)


# -------------------------------------------------------------------------
# Orders
# -------------------------------------------------------------------------


@app.get(
    "/orders",
    response_model=List[Order],
    tags=["orders"],
    operation_id="get_all_orders",
)
async def get_all_orders(service: OrderService = Depends(get_order_service)):
    """All orders, newest first."""
    return await service.get_all_orders()


@app.post(
    "/orders",
    response_model=Order,
    status_code=status.HTTP_201_CREATED,
    tags=["orders"],
    operation_id="create_order",
)
async def create_order(
    request: CreateOrderRequest,
    service: OrderService = Depends(get_order_service),
):
    """
    Create a Pending order.

    Unit prices come from the catalogue, stock is reserved and the customer's
    discount is applied. Either everything is stored or nothing is.
    """
    try:
        return await service.create_order(request)
    except NotFoundError as e:
        raise not_found_error(e.entity_type, e.entity_id)
    except OrderValidationError as e:
        raise bad_request_error(e.message)


@app.get(
    "/orders/{order_id}",
    response_model=Order,
    tags=["orders"],
    operation_id="get_order_details",
)
async def get_order(order_id: int, service: OrderService = Depends(get_order_service)):
    order = await service.get_order(order_id)
    if order is None:
        raise not_found_error("order", order_id)
    return order


@app.put(
    "/orders/{order_id}/status",
    response_model=TransitionResult,
    tags=["orders"],
    operation_id="update_order_status",
)
async def update_order_status(
    order_id: int,
    request: UpdateOrderStatusRequest,
    service: OrderService = Depends(get_order_service),
):
    """
    Move an order to a new status.

    Allowed: Pending -> Shipped, Shipped -> Delivered, Shipped -> Cancelled.
    Rejections return 400 with the reason, or 404 for an unknown order.
    """
    result = await service.change_status(order_id, request.new_status, request.notes)
    return _transition_response(result)


@app.post(
    "/orders/{order_id}/cancel",
    response_model=TransitionResult,
    tags=["orders"],
    operation_id="cancel_order",
)
async def cancel_order(
    order_id: int,
    request: Optional[CancelOrderRequest] = None,
    service: OrderService = Depends(get_order_service),
):
    reason = request.reason if request else ""
    result = await service.cancel_order(order_id, reason)
    return _transition_response(result)


@app.get(
    "/orders/{order_id}/valid-statuses",
    response_model=List[OrderStatus],
    tags=["orders"],
    operation_id="get_valid_next_statuses",
)
async def get_valid_next_statuses(
    order_id: int, service: OrderService = Depends(get_order_service)
):
    if await service.get_order(order_id) is None:
        raise not_found_error("order", order_id)
    return await service.get_valid_next_statuses(order_id)


@app.get(
    "/orders/{order_id}/can-transition-to/{target_status}",
    response_model=bool,
    tags=["orders"],
    operation_id="can_transition_to",
)
async def can_transition_to(
    order_id: int,
    target_status: OrderStatus,
    service: OrderService = Depends(get_order_service),
):
    if await service.get_order(order_id) is None:
        raise not_found_error("order", order_id)
    return await service.can_transition_to(order_id, target_status)


# Mount MCP tools
mcp = FastApiMCP(
    app,
    name="order-service",
    description="Order lifecycle, discounts and analytics",
    describe_full_response_schema=True,
    include_tags=["orders", "products"],
    include_operations=[
        "order_health",
        "get_order_analytics",
        "get_order_analytics_for_period",
        "calculate_discount",
        "get_orders_by_status",
        "get_orders_by_customer",
        "get_all_orders",
        "get_order_details",
        "get_valid_next_statuses",
        "can_transition_to",
        "get_low_stock_products",
        "get_out_of_stock_products",
        "get_product_details",
    ],
)
mcp.mount()
