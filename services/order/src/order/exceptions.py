# services/order/src/order/exceptions.py
"""
Business exceptions raised by the order service.

Status transitions never raise; they report failures through
``TransitionResult``. Storage failures are ``StoreError`` from the store
interface and are passed through untouched.
"""

from typing import Union


class OrderServiceError(Exception):
    """Base class for expected business failures."""

    def __init__(self, message: str, error_type: str = "general"):
        self.message = message
        self.error_type = error_type
        super().__init__(self.message)

    def __str__(self):
        return self.message


class NotFoundError(OrderServiceError):
    """A referenced customer, product or order does not exist."""

    def __init__(self, entity_type: str, entity_id: Union[int, str]):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"{entity_type.title()} with ID {entity_id} not found",
            error_type="not_found",
        )


class OrderValidationError(OrderServiceError):
    """The request is well-formed but breaks a business rule."""

    def __init__(self, message: str):
        super().__init__(message, error_type="validation")
