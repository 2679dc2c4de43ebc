"""
Standardized error responses and HTTP exception helpers.

Every helper returns (does not raise) an ``HTTPException`` whose detail is an
``ErrorResponse`` payload, so endpoints read ``raise not_found_error(...)``.
"""

from typing import Optional, Union

from fastapi import HTTPException, status

from .models import ErrorResponse


def _http_error(status_code: int, error: str, detail: str) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail=ErrorResponse(error=error, detail=detail).model_dump(),
    )


def bad_request_error(detail: str) -> HTTPException:
    """400 for requests rejected by a business rule (stock, empty order, dates)."""
    return _http_error(status.HTTP_400_BAD_REQUEST, "Bad Request", detail)


def not_found_error(
    entity_type: str, entity_id: Union[str, int], detail: Optional[str] = None
) -> HTTPException:
    """
    404 for a missing customer, product or order.

    Args:
        entity_type: Type of entity not found (e.g., "order", "product")
        entity_id: Identifier of the entity not found
        detail: Optional additional details about the error
    """
    message = f"{entity_type.title()} with ID '{entity_id}' not found"
    if detail:
        message += f". {detail}"
    return _http_error(status.HTTP_404_NOT_FOUND, "Not Found", message)


def service_error(
    message: str = "Internal service error",
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
) -> HTTPException:
    """
    Generic failure; callers pass a fixed message so storage internals never
    reach clients.
    """
    return _http_error(status_code, "Service Error", message)
