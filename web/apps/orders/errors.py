"""Errors raised by the orders core.

Every caller-facing failure is an ``OrderError`` carrying a short,
upper-case ``code`` (the same codes the API layer maps to HTTP statuses)
plus the structured fields needed to render a user-facing message.
Unexpected database failures are reported as ``PersistenceError`` and are
deliberately not part of the ``OrderError`` hierarchy.
"""


class OrderError(Exception):
    """Base class for recoverable, caller-facing order failures."""

    code = "ORDER_ERROR"

    def to_dict(self) -> dict:
        """Return a JSON-serializable representation of the error."""
        return {"detail": self.code, "message": str(self)}


class OrderValidationError(OrderError):
    """Raised when the input payload is malformed.

    Attributes:
        errors: List of error dicts (pydantic's ``errors()`` shape).
    """

    code = "VALIDATION_ERROR"

    def __init__(self, errors: list | None = None, message: str = "Invalid order input"):
        self.errors = errors or []
        super().__init__(message)

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["errors"] = self.errors
        return body


class ProductNotFoundError(OrderError):
    code = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found")


class InsufficientStockError(OrderError):
    """Raised when a product cannot cover the requested quantity.

    Attributes:
        product_name: Name of the product, for the user-facing message.
        available: Units in stock at the time of the check.
        requested: Units the caller asked for.
    """

    code = "INSUFFICIENT_STOCK"

    def __init__(self, product_name: str, available: int, requested: int):
        self.product_name = product_name
        self.available = available
        self.requested = requested
        super().__init__(
            f'Insufficient stock for product "{product_name}". '
            f"Available: {available}, Requested: {requested}"
        )

    def to_dict(self) -> dict:
        body = super().to_dict()
        body.update(product=self.product_name, available=self.available, requested=self.requested)
        return body


class OrderNotFoundError(OrderError):
    code = "ORDER_NOT_FOUND"

    def __init__(self, order_id):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")


class AccessDeniedError(OrderError):
    """The order exists but is not visible to the caller."""

    code = "ACCESS_DENIED"

    def __init__(self, order_id):
        self.order_id = order_id
        super().__init__("Access denied")


class ForbiddenError(OrderError):
    """The caller's role is not allowed to perform the operation."""

    code = "FORBIDDEN"

    def __init__(self, reason: str = "Operation not allowed for this role"):
        super().__init__(reason)


class InvalidTransitionError(OrderError):
    code = "INVALID_TRANSITION"

    def __init__(self, current, requested):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot transition from {_value(current)} to {_value(requested)}")

    def to_dict(self) -> dict:
        body = super().to_dict()
        body.update(current=_value(self.current), requested=_value(self.requested))
        return body


class InvalidStateError(OrderError):
    """Cancellation attempted outside PENDING/CONFIRMED."""

    code = "INVALID_STATE"

    def __init__(self, status):
        self.status = status
        super().__init__(f"Order cannot be cancelled in status {_value(status)}")


class PersistenceError(Exception):
    """Unexpected persistence failure; the transaction was rolled back."""

    code = "INTERNAL_ERROR"


def _value(status) -> str:
    return getattr(status, "value", status)
