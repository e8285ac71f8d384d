"""
Domain exceptions and safe HTTP error helpers.

Domain errors are raised by services and caught by the orchestrator, which
turns them into customer-facing replies. HTTP helpers keep internal details
out of API responses: generic message outward, detailed log inward.
"""
from fastapi import HTTPException, status
import logging

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Base class for storefront domain errors."""


class RepositoryError(StoreError):
    """Persistence layer unreachable or failed. Recoverable, but the customer must be told."""


class ProductNotFoundError(StoreError):
    def __init__(self, product_id: str):
        super().__init__(f"Product {product_id} not found")
        self.product_id = product_id


class InsufficientStockError(StoreError):
    """Requested quantity exceeds what is on hand. Carries the available count."""

    def __init__(self, product_id: str, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for {product_id}: requested {requested}, available {available}"
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class OracleError(StoreError):
    """Intent oracle could not be invoked (timeout, API error, not configured)."""


class OrderNotFoundError(StoreError):
    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class InvalidStatusTransition(StoreError):
    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot move order from {current} to {requested}")
        self.current = current
        self.requested = requested


class BusinessError:
    """HTTP exceptions with safe (non-leaky) messages."""

    @staticmethod
    def bad_request(detail: str) -> HTTPException:
        """
        400 for input validation errors.

        OK to include specific details here since the caller caused the issue.
        """
        logger.info(f"Bad request: {detail}")
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )
