from .models import (
    AppNotification,
    ChatMessage,
    Client,
    ExpenseItem,
    InventoryItem,
    Invoice,
    InvoiceStatus,
    LineItem,
    Order,
    PricingTier,
    UserRole,
)
from .errors import (
    AuthorizationError,
    InsufficientStockError,
    NotFoundError,
    PaymentError,
    RemoteStoreError,
    ValidationError,
)

__all__ = [
    "AppNotification",
    "ChatMessage",
    "Client",
    "ExpenseItem",
    "InventoryItem",
    "Invoice",
    "InvoiceStatus",
    "LineItem",
    "Order",
    "PricingTier",
    "UserRole",
    "AuthorizationError",
    "InsufficientStockError",
    "NotFoundError",
    "PaymentError",
    "RemoteStoreError",
    "ValidationError",
]
