"""
marketplace/core/errors.py - Checkout domain exceptions.

Raised by the services; the checkout pipeline (and the app-level exception
handler for everything else) turns them into `{"error", "message", "details"}`
bodies with the status code carried on the class.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class CheckoutError(Exception):
    status_code = 500
    error = "internal_error"
    message = "Unexpected error"

    def __init__(self, message: Optional[str] = None, details: Any = None) -> None:
        super().__init__(message or self.message)
        self.message = message or self.message
        self.details = details

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.error, "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(CheckoutError):
    status_code = 400
    error = "validation_error"
    message = "Invalid request"


class BusinessRuleViolation(CheckoutError):
    status_code = 400
    error = "business_rule_violation"


class EmptyCart(BusinessRuleViolation):
    error = "empty_cart"
    message = "Cart is empty"


class ProductUnavailable(BusinessRuleViolation):
    error = "product_unavailable"
    message = "Product is no longer available"


class InsufficientStock(BusinessRuleViolation):
    error = "insufficient_stock"
    message = "Insufficient stock"


class MixedSellerCart(BusinessRuleViolation):
    error = "mixed_seller_cart"
    message = "Cart contains products from more than one seller; check them out separately"


class IdempotencyConflict(CheckoutError):
    status_code = 400
    error = "idempotency_conflict"


class MissingIdempotencyKey(IdempotencyConflict):
    error = "missing_idempotency_key"
    message = "Idempotency-Key header is required for checkout requests"


class InvalidIdempotencyKey(IdempotencyConflict):
    error = "invalid_idempotency_key"
    message = "Invalid Idempotency-Key format. Must be a UUID or an opaque token of 16-128 characters."


class IdempotencyKeyReused(IdempotencyConflict):
    error = "idempotency_key_reused"
    message = "Idempotency-Key was already used for another checkout"


class IdempotencyInProgress(IdempotencyConflict):
    status_code = 409
    error = "idempotency_in_progress"
    message = "A checkout with this Idempotency-Key is still being processed"


class RateLimitExceeded(CheckoutError):
    status_code = 429
    error = "rate_limit_exceeded"
    message = "Too many checkout requests. Please try again later."

    def __init__(self, retry_after: int, message: Optional[str] = None) -> None:
        super().__init__(message, details={"retry_after": retry_after})
        self.retry_after = retry_after


class InvalidStatus(CheckoutError):
    status_code = 400
    error = "invalid_status"


class OrderNotFound(CheckoutError):
    status_code = 404
    error = "order_not_found"
    message = "Order not found"


class Forbidden(CheckoutError):
    status_code = 403
    error = "forbidden"
    message = "Access denied"


class InternalError(CheckoutError):
    message = "Failed to process checkout"
