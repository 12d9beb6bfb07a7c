"""
Engine error taxonomy.

Every failure the engine reports to callers is one of these. Each class
carries the HTTP status the API layer maps it to, so services never import
FastAPI.
"""


class OrderLedgerError(Exception):
    """Base class for engine errors."""
    status_code = 400
    code = "ERROR"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class NotFoundError(OrderLedgerError):
    """Entity absent or not owned by the requesting business."""
    status_code = 404
    code = "NOT_FOUND"


class InvalidStatusError(OrderLedgerError):
    """Unknown status or disallowed transition target."""
    status_code = 400
    code = "INVALID_STATUS"


class InvalidQuantityError(OrderLedgerError):
    """Quantity (or amount) that is zero, negative or non-numeric."""
    status_code = 400
    code = "INVALID_QUANTITY"


class InsufficientStockError(OrderLedgerError):
    """FIFO allocation cannot satisfy the requested quantity."""
    status_code = 409
    code = "INSUFFICIENT_STOCK"

    def __init__(self, message: str = "", requested: int = 0, available: int = 0):
        super().__init__(message)
        self.requested = requested
        self.available = available


class InvariantViolationError(OrderLedgerError):
    """Ledger arithmetic mismatch. Should not occur from correct callers."""
    status_code = 500
    code = "INVARIANT_VIOLATION"


class UnauthorizedError(OrderLedgerError):
    """No resolved business identity on the request."""
    status_code = 401
    code = "UNAUTHORIZED"


class SubscriptionRequiredError(OrderLedgerError):
    """Billing collaborator reports no active subscription."""
    status_code = 402
    code = "SUBSCRIPTION_REQUIRED"


class ConflictError(OrderLedgerError):
    """Catalog identity already taken (e.g. duplicate SKU)."""
    status_code = 409
    code = "CONFLICT"
