from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Generic, Optional, TypeVar

from mdc.domain.models import (
    AppNotification,
    ChatMessage,
    Client,
    ClientStatus,
    DistributorTier,
    ExpenseItem,
    InventoryItem,
    Invoice,
    LineItem,
    NotificationType,
    Order,
    PetDetails,
    UserRole,
    new_id,
)
from mdc.domain.money import ZERO, money, to_decimal, to_int
from mdc.domain.normalize import as_list, normalize_items, normalize_status, pick, to_bool

T = TypeVar("T")

# Recoverable credentials are never mapped in either direction.
SENSITIVE_COLUMNS = frozenset({"visible_password", "visiblePassword", "password_hint", "passwordHint", "password"})


def camel(column: str) -> str:
    head, *rest = column.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


@dataclass(frozen=True)
class Field:
    attr: str
    column: str
    read: Callable[[Any], Any]
    write: Callable[[Any], Any]
    aliases: tuple[str, ...] = ()


# -------- readers / writers --------

def _text(default: str = "") -> Callable[[Any], str]:
    return lambda v: default if v is None else str(v)


def _optional_text(v: Any) -> Optional[str]:
    if v is None:
        return None
    s = str(v)
    return s if s else None


def _read_id(v: Any) -> str:
    s = "" if v is None else str(v)
    return s or new_id()


def _int(default: int = 0) -> Callable[[Any], int]:
    return lambda v: to_int(v, default=default)


def _decimal(v: Any) -> Decimal:
    return to_decimal(v) if v is not None else ZERO


def _optional_decimal(v: Any) -> Optional[Decimal]:
    return None if v is None else to_decimal(v)


def _bool(default: bool = False) -> Callable[[Any], bool]:
    return lambda v: default if v is None else to_bool(v)


def _enum(enum_cls: type[Enum], default: Any) -> Callable[[Any], Any]:
    by_value = {str(m.value).lower(): m for m in enum_cls}

    def read(v: Any) -> Any:
        if isinstance(v, enum_cls):
            return v
        return by_value.get(str(v or "").strip().lower(), default)

    return read


def _items(v: Any) -> tuple[LineItem, ...]:
    return tuple(normalize_items(v))


def _pets(v: Any) -> tuple[PetDetails, ...]:
    return tuple(PET_MAPPER.from_storage_row(p) for p in as_list(v) if isinstance(p, dict))


def _same(v: Any) -> Any:
    return v


def _write_money(v: Any) -> float:
    return float(money(v))


def _write_optional_money(v: Any) -> Optional[float]:
    return None if v is None else float(money(v))


def _write_number(v: Any) -> float:
    return float(to_decimal(v))


def _write_enum(v: Any) -> Any:
    return v.value if isinstance(v, Enum) else v


def _write_items(items: Any) -> list[dict]:
    return [
        {
            "id": it.id,
            "description": it.description,
            "quantity": int(it.quantity),
            "unit_price": float(it.unit_price),
            "total": float(money(it.total)),
        }
        for it in items or ()
    ]


def _write_pets(pets: Any) -> list[dict]:
    return [PET_MAPPER.to_storage_row(p) for p in pets or ()]


def text(attr: str, default: str = "", *aliases: str) -> Field:
    return Field(attr, attr, _text(default), _same, aliases)


def optional_text(attr: str, *aliases: str) -> Field:
    return Field(attr, attr, _optional_text, _same, aliases)


def integer(attr: str, default: int = 0) -> Field:
    return Field(attr, attr, _int(default), int)


def amount(attr: str, *aliases: str) -> Field:
    return Field(attr, attr, _decimal, _write_money, aliases)


def flag(attr: str, default: bool = False) -> Field:
    return Field(attr, attr, _bool(default), bool)


def choice(attr: str, enum_cls: type[Enum], default: Any) -> Field:
    return Field(attr, attr, _enum(enum_cls, default), _write_enum)


# -------- mapper --------

@dataclass
class EntityMapper(Generic[T]):
    table: str
    record_type: type
    fields: list[Field]
    timestamp_column: Optional[str] = "created_at"

    @property
    def cache_key(self) -> str:
        return f"mdc_{self.table}"

    def from_storage_row(self, row: Any) -> T:
        """Snake_case column wins over its camelCase twin; anything malformed degrades to defaults."""
        if not isinstance(row, dict):
            row = {}
        row = {k: v for k, v in row.items() if k not in SENSITIVE_COLUMNS}
        values = {}
        for f in self.fields:
            raw = pick(row, f.column, camel(f.column), *f.aliases)
            values[f.attr] = f.read(raw)
        return self.record_type(**values)

    def to_storage_row(self, record: T) -> dict:
        return {f.column: f.write(getattr(record, f.attr)) for f in self.fields}

    def record_id(self, record: T) -> str:
        return str(getattr(record, "id"))


PET_MAPPER: EntityMapper[PetDetails] = EntityMapper(
    table="pets",
    record_type=PetDetails,
    timestamp_column=None,
    fields=[
        Field("id", "id", _read_id, str),
        text("name"),
        text("age"),
        text("breed"),
        text("gender", "male"),
        flag("is_neutered"),
        flag("is_vaccinated", True),
        text("allergies"),
        text("behavior_with_dogs"),
        text("medical_notes"),
        optional_text("last_grooming_date"),
    ],
)

_ORDER_FIELDS: list[Field] = [
    Field("id", "id", _read_id, str),
    text("order_number"),
    text("client_name"),
    text("client_email"),
    Field("items", "items", _items, _write_items),
    amount("total"),
    Field("status", "status", normalize_status, _write_enum),
    text("date", "", "created_at", "createdAt"),
    flag("is_wholesale"),
    optional_text("payment_id"),
    optional_text("shipping_address"),
    optional_text("created_at"),
]

ORDER_MAPPER: EntityMapper[Order] = EntityMapper(table="orders", record_type=Order, fields=_ORDER_FIELDS)

INVOICE_MAPPER: EntityMapper[Invoice] = EntityMapper(
    table="invoices",
    record_type=Invoice,
    fields=_ORDER_FIELDS
    + [
        text("invoice_number", "", "order_number", "orderNumber"),
        text("client_phone"),
        text("client_address"),
        text("client_city_postcode"),
        text("service_date"),
        text("due_date"),
        amount("subtotal"),
        flag("is_vat_invoice"),
        Field("discount_applied", "discount_applied", _optional_decimal, _write_optional_money),
        optional_text("payment_method"),
        optional_text("distributor_id"),
    ],
)

CLIENT_MAPPER: EntityMapper[Client] = EntityMapper(
    table="clients",
    record_type=Client,
    fields=[
        Field("id", "id", _read_id, str),
        text("name"),
        text("email"),
        text("phone"),
        text("address_line1"),
        optional_text("address_line2"),
        text("city"),
        text("postcode"),
        choice("role", UserRole, UserRole.CLIENT),
        choice("status", ClientStatus, ClientStatus.PENDING),
        integer("invoices_sent"),
        text("created_at"),
        optional_text("business_name"),
        optional_text("vat_number"),
        choice("tier", DistributorTier, None),
        optional_text("business_type"),
        Field("pets", "pets", _pets, _write_pets),
        optional_text("emergency_contact_name"),
        optional_text("emergency_contact_phone"),
        optional_text("vet_info"),
    ],
)

INVENTORY_MAPPER: EntityMapper[InventoryItem] = EntityMapper(
    table="inventory",
    record_type=InventoryItem,
    timestamp_column=None,
    fields=[
        Field("id", "id", _read_id, str),
        text("name"),
        integer("quantity"),
        text("unit"),
        Field("unit_cost", "unit_cost", _decimal, _write_number),
        integer("reorder_level"),
        text("category", "Snack"),
        optional_text("batch_number"),
        optional_text("production_date"),
        optional_text("expiry_date"),
    ],
)

EXPENSE_MAPPER: EntityMapper[ExpenseItem] = EntityMapper(
    table="expenses",
    record_type=ExpenseItem,
    timestamp_column="date",
    fields=[
        Field("id", "id", _read_id, str),
        text("date"),
        text("category"),
        text("description"),
        amount("amount"),
        flag("is_loss"),
    ],
)

NOTIFICATION_MAPPER: EntityMapper[AppNotification] = EntityMapper(
    table="notifications",
    record_type=AppNotification,
    fields=[
        Field("id", "id", _read_id, str),
        choice("type", NotificationType, NotificationType.SYSTEM),
        text("title"),
        text("message"),
        flag("read"),
        Field("timestamp", "created_at", _text(""), _same, ("timestamp",)),
        text("target_role", "all"),
    ],
)

MESSAGE_MAPPER: EntityMapper[ChatMessage] = EntityMapper(
    table="messages",
    record_type=ChatMessage,
    fields=[
        Field("id", "id", _read_id, str),
        text("thread_id"),
        text("sender_id"),
        text("text"),
        Field("timestamp", "created_at", _text(""), _same, ("timestamp",)),
    ],
)
