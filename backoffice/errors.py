# backoffice/errors.py
"""
Domain errors raised by the services layer.

Each family maps to one HTTP status in main.py, so the routes never build
HTTPExceptions for business failures themselves.
"""


class BackofficeError(Exception):
    """Base class for all domain errors."""
    status_code = 500

    def __init__(self, message: str = None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__


# Caller-correctable input problems
class ValidationError(BackofficeError):
    """Invalid input."""
    status_code = 400


class InvalidQuantity(ValidationError):
    """Quantity must be a positive integer."""


# Unknown resources
class NotFound(BackofficeError):
    """Resource not found."""
    status_code = 404


class ProductNotFound(NotFound):
    """Product not found."""

    def __init__(self, product_id=None):
        super().__init__(f"Product not found: {product_id}" if product_id is not None else None)
        self.product_id = product_id


class OrderNotFound(NotFound):
    """Order not found."""


# Retryable collisions with existing state
class Conflict(BackofficeError):
    """Concurrent update conflict, retry the request."""
    status_code = 409


class SequenceExhausted(Conflict):
    """Could not allocate a unique sequence number."""


class InvoiceAlreadyIssued(Conflict):
    """Invoice already issued for this order."""


class InvalidTransition(Conflict):
    """Order status transition not allowed."""


# Storage unreachable or otherwise failing; details stay in the logs
class Unavailable(BackofficeError):
    """Service temporarily unavailable."""
    status_code = 503
