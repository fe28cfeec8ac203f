class AppError(Exception):
    """Base for errors whose message is meant for the person using the app.

    ``code`` is a stable tag for logs and callers that branch on the kind of failure.
    """

    code = "app_error"


class ValidationError(AppError):
    code = "invalid"


class NotFoundError(AppError):
    code = "not_found"


class InsufficientStockError(AppError):
    code = "insufficient_stock"

    def __init__(self, name: str, requested: int, available: int):
        super().__init__(f"Not enough stock for {name}. Available: {available}")
        self.name = name
        self.requested = requested
        self.available = available


class RemoteStoreError(AppError):
    """Hosted backend unreachable, not configured, or refused the request; reads fall back to the cache."""

    code = "remote_unavailable"


class AuthorizationError(AppError):
    code = "not_authorized"


class PaymentError(AppError):
    code = "payment_failed"
