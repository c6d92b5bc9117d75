"""
Zeene Storefront - Custom Exceptions
=====================================
Business-level exceptions that can be caught and converted to HTTP responses.
"""

from typing import Dict, Optional


class StorefrontError(Exception):
    """Base exception for all business logic errors."""
    status_code = 400

    def __init__(self, message: str = "Something went wrong. Please try again."):
        self.message = message
        super().__init__(self.message)


class ValidationError(StorefrontError):
    """Bad or missing input. Raised before any write happens."""
    status_code = 422

    def __init__(self, message: str = "Please correct the highlighted fields.", errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.errors = errors or {}


class InvalidCoupon(ValidationError):
    """Raised when a coupon code cannot be applied."""

    def __init__(self, message: str = "Invalid coupon code"):
        super().__init__(message, {"coupon_code": message})


class InvalidStatusTransition(ValidationError):
    """Raised for order status changes outside pending → approved/rejected."""

    def __init__(self, from_status: str, to_status: str):
        super().__init__(f"Cannot change order status from {from_status} to {to_status}")
        self.from_status = from_status
        self.to_status = to_status


class NotFoundError(StorefrontError):
    """Raised when a requested resource doesn't exist."""
    status_code = 404


class DuplicateError(StorefrontError):
    """Raised for unique constraint violations at the business level."""
    status_code = 409


class PersistenceError(StorefrontError):
    """Raised when an order or its items could not be written."""
    status_code = 500

    def __init__(self, message: str = "Failed to place order. Please try again."):
        super().__init__(message)


class NotificationError(StorefrontError):
    """Raised by email senders. Always handled inside the notifier."""
    status_code = 502


class RateLimitExceeded(StorefrontError):
    """Raised when a client exceeds its request budget."""
    status_code = 429

    def __init__(self):
        super().__init__("Too many requests. Please try again later.")

