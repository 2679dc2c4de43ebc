# libs/oms_shared/models.py
"""
Shared Pydantic models used across all services.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standard error response model used across all services.

    Provides a consistent error format for all API endpoints,
    with a machine-readable error code and human-readable detail message.

    Example:
        {
            "error": "Not Found",
            "detail": "Order with ID '42' not found"
        }
    """

    error: str = Field(..., description="Error code or type")
    detail: Optional[str] = Field(None, description="Human-readable error details")


class HealthStatus(str, Enum):
    """
    Health status enum for health check responses.

    Used in /health endpoints to indicate the operational status of the service.
    """

    OK = "ok"
    WARNING = "warning"
    ERROR = "error"


class HealthResponse(BaseModel):
    """
    Standard health check response model for /health endpoints.

    Example:
        {
            "status": "ok",
            "version": "1.0.0",
            "details": {
                "order_count": 12,
                "store": "ready"
            }
        }
    """

    status: HealthStatus = Field(..., description="Overall health status")
    version: str = Field(..., description="Service version identifier")
    details: Dict[str, Any] = Field(
        default_factory=dict, description="Service-specific health details"
    )
