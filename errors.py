"""
Domain errors.

Every error raised by the store carries the HTTP status it maps to and a short
machine-readable code. The exception handlers in ``main`` turn them into the
``{"success": false, "message": ..., "error": ...}`` envelope.
"""

from typing import Optional


class StoreError(Exception):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, *, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationError(StoreError):
    status_code = 400
    code = "validation_error"


class Unauthenticated(StoreError):
    status_code = 401
    code = "unauthenticated"

    def __init__(self, message: str = "Not authenticated", **kwargs):
        super().__init__(message, **kwargs)


class Unauthorized(StoreError):
    status_code = 403
    code = "unauthorized"

    def __init__(self, message: str = "Not authorized", **kwargs):
        super().__init__(message, **kwargs)


class NotFound(StoreError):
    status_code = 404
    code = "not_found"


class ProductNotFound(NotFound):
    code = "product_not_found"

    def __init__(self, product_id: str):
        super().__init__(f"Product {product_id} not found")
        self.product_id = product_id


class SizeUnavailable(NotFound):
    code = "size_unavailable"

    def __init__(self, product_name: str, size: float):
        super().__init__(f"Size {_fmt_size(size)} not available for {product_name}")
        self.product_name = product_name
        self.size = size


class InsufficientStock(StoreError):
    status_code = 400
    code = "insufficient_stock"

    def __init__(self, product_name: str, size: float, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for {product_name} (Size {_fmt_size(size)}). Only {available} left."
        )
        self.product_name = product_name
        self.size = size
        self.available = available
        self.requested = requested


class InvalidTransition(StoreError):
    status_code = 400
    code = "invalid_transition"

    def __init__(self, message: str, *, current: str, target: str):
        super().__init__(message)
        self.current = current
        self.target = target


class Conflict(StoreError):
    status_code = 409
    code = "conflict"


class ServiceUnavailable(StoreError):
    status_code = 503
    code = "service_unavailable"


def _fmt_size(size: float) -> str:
    # 10.0 -> "10", 9.5 -> "9.5"
    return f"{size:g}"
