"""
Shared utilities for the order management services.

Configuration base, logging, HTTP error helpers, health reporting,
metrics and middleware used by every service in the repo.
"""

# Configuration
from .config import BaseServiceConfig

# Error helpers
from .errors import (
    bad_request_error,
    not_found_error,
    service_error,
)

# Health check
from .health import format_health_response, status_from_checks

# Logging
from .logging import get_logger

# Metrics
from .metrics import Metrics

# Middleware
from .middleware import CorrelationIdMiddleware, MetricsMiddleware

# Models
from .models import ErrorResponse, HealthResponse, HealthStatus

__all__ = [
    # Configuration
    "BaseServiceConfig",
    # Errors
    "bad_request_error",
    "not_found_error",
    "service_error",
    # Health
    "format_health_response",
    "status_from_checks",
    # Logging
    "get_logger",
    # Metrics
    "Metrics",
    # Middleware
    "CorrelationIdMiddleware",
    "MetricsMiddleware",
    # Models
    "ErrorResponse",
    "HealthResponse",
    "HealthStatus",
]
