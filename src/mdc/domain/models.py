from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum
from typing import Optional

from mdc.domain.money import ZERO, money, to_decimal, to_int


class InvoiceStatus(str, Enum):
    DRAFT = "Draft"
    SENT = "Sent"
    PAID = "Paid"
    OVERDUE = "Overdue"
    CANCELLED = "Cancelled"
    PENDING_PAYMENT = "Pending Payment"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"


class UserRole(str, Enum):
    ADMIN = "admin"
    DISTRIBUTOR = "distributor"
    CLIENT = "client"


class ClientStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"


class DistributorTier(str, Enum):
    SILVER = "Silver"
    GOLD = "Gold"
    PLATINUM = "Platinum"
    DIAMOND = "Diamond"


class NotificationType(str, Enum):
    ORDER = "order"
    PAYMENT = "payment"
    STOCK = "stock"
    SYSTEM = "system"
    CLIENT = "client"


ALL_ROLES = "all"


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class LineItem:
    id: str
    description: str
    quantity: int
    unit_price: Decimal
    total: Decimal

    @classmethod
    def create(cls, description: str, quantity: object, unit_price: object, id: str | None = None) -> "LineItem":
        qty = max(to_int(quantity), 0)
        price = max(to_decimal(unit_price), ZERO)
        return cls(
            id=id or new_id(),
            description=(description or "").strip(),
            quantity=qty,
            unit_price=price,
            total=money(price * qty),
        )

    def with_quantity(self, quantity: object) -> "LineItem":
        qty = max(to_int(quantity), 0)
        return replace(self, quantity=qty, total=money(self.unit_price * qty))

    def with_unit_price(self, unit_price: object) -> "LineItem":
        price = max(to_decimal(unit_price), ZERO)
        return replace(self, unit_price=price, total=money(price * self.quantity))


@dataclass(frozen=True)
class PricingTier:
    name: str
    min_units: int
    max_units: int
    discount_rate: Decimal


@dataclass(frozen=True)
class CatalogEntry:
    id: str
    name: str
    price: Decimal
    category: str


@dataclass(frozen=True)
class Order:
    id: str
    order_number: str
    client_name: str
    client_email: str
    items: tuple[LineItem, ...]
    total: Decimal
    status: InvoiceStatus
    date: str
    is_wholesale: bool = False
    payment_id: Optional[str] = None
    shipping_address: Optional[str] = None
    created_at: Optional[str] = None


@dataclass(frozen=True)
class Invoice(Order):
    invoice_number: str = ""
    client_phone: str = ""
    client_address: str = ""
    client_city_postcode: str = ""
    service_date: str = ""
    due_date: str = ""
    subtotal: Decimal = ZERO
    is_vat_invoice: bool = False
    discount_applied: Optional[Decimal] = None
    payment_method: Optional[str] = None
    distributor_id: Optional[str] = None


@dataclass(frozen=True)
class PetDetails:
    id: str
    name: str
    age: str = ""
    breed: str = ""
    gender: str = "male"
    is_neutered: bool = False
    is_vaccinated: bool = True
    allergies: str = ""
    behavior_with_dogs: str = ""
    medical_notes: str = ""
    last_grooming_date: Optional[str] = None


@dataclass(frozen=True)
class Client:
    id: str
    name: str
    email: str
    phone: str = ""
    address_line1: str = ""
    address_line2: Optional[str] = None
    city: str = ""
    postcode: str = ""
    role: UserRole = UserRole.CLIENT
    status: ClientStatus = ClientStatus.PENDING
    invoices_sent: int = 0
    created_at: str = ""
    business_name: Optional[str] = None
    vat_number: Optional[str] = None
    tier: Optional[DistributorTier] = None
    business_type: Optional[str] = None
    pets: tuple[PetDetails, ...] = ()
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    vet_info: Optional[str] = None


@dataclass(frozen=True)
class InventoryItem:
    id: str
    name: str
    quantity: int
    unit: str
    unit_cost: Decimal
    reorder_level: int
    category: str
    batch_number: Optional[str] = None
    production_date: Optional[str] = None
    expiry_date: Optional[str] = None


@dataclass(frozen=True)
class ExpenseItem:
    id: str
    date: str
    category: str
    description: str
    amount: Decimal
    is_loss: bool = False


@dataclass(frozen=True)
class AppNotification:
    id: str
    type: NotificationType
    title: str
    message: str
    read: bool
    timestamp: str
    target_role: str


@dataclass(frozen=True)
class ChatMessage:
    id: str
    thread_id: str
    sender_id: str
    text: str
    timestamp: str
