from .auth_service import AuthService
from .checkout_service import CheckoutService
from .client_service import ClientService
from .events import ChangeBus, ChangeEvent
from .expense_service import ExpenseService
from .inventory_service import InventoryService
from .invoice_service import InvoiceService
from .messaging_service import MessagingService
from .notification_service import NotificationService
from .order_service import OrderService
from .pricing_service import PricingService
from .reporting_service import ReportingService
from .storage_service import StorageService
from .tax_service import TaxService

__all__ = [
    "AuthService",
    "ChangeBus",
    "ChangeEvent",
    "CheckoutService",
    "ClientService",
    "ExpenseService",
    "InventoryService",
    "InvoiceService",
    "MessagingService",
    "NotificationService",
    "OrderService",
    "PricingService",
    "ReportingService",
    "StorageService",
    "TaxService",
]
