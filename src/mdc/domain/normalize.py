from __future__ import annotations

import json
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from mdc.domain.models import InvoiceStatus, LineItem, new_id
from mdc.domain.money import ZERO, money, to_decimal, to_int

log = logging.getLogger(__name__)

_STATUS_ALIASES: dict[str, InvoiceStatus] = {
    "draft": InvoiceStatus.DRAFT,
    "sent": InvoiceStatus.SENT,
    "paid": InvoiceStatus.PAID,
    "pagada": InvoiceStatus.PAID,
    "pagado": InvoiceStatus.PAID,
    "overdue": InvoiceStatus.OVERDUE,
    "cancelled": InvoiceStatus.CANCELLED,
    "canceled": InvoiceStatus.CANCELLED,
    "pending payment": InvoiceStatus.PENDING_PAYMENT,
    "shipped": InvoiceStatus.SHIPPED,
    "delivered": InvoiceStatus.DELIVERED,
}


def pick(row: dict, *keys: str, default: Any = None) -> Any:
    """First present, non-null value among ``keys``."""
    for key in keys:
        value = row.get(key)
        if value is not None:
            return value
    return default


def normalize_status(value: object) -> InvoiceStatus:
    if isinstance(value, InvoiceStatus):
        return value
    key = str(value or "").strip().lower().replace("_", " ")
    return _STATUS_ALIASES.get(key, InvoiceStatus.DRAFT)


def is_paid(value: object) -> bool:
    return normalize_status(value) is InvoiceStatus.PAID


def to_bool(value: object) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y", "t"}
    return bool(value)


def as_list(value: object) -> list:
    """Coerce list-ish storage values (list, dict of entries, JSON text) into a list."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError:
            return []
        return as_list(parsed) if isinstance(parsed, (list, dict)) else []
    if isinstance(value, dict):
        return list(value.values())
    return []


def _stored_total(value: object) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        d = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return money(d) if d.is_finite() else None


def normalize_item(raw: dict) -> LineItem:
    quantity = max(to_int(pick(raw, "quantity", "qty"), default=1), 0)
    unit_price = max(to_decimal(pick(raw, "unit_price", "unitPrice", "price")), ZERO)
    total = _stored_total(pick(raw, "total", "line_total", "lineTotal"))
    if total is None:
        total = money(unit_price * quantity)
    return LineItem(
        id=str(pick(raw, "id", default="") or "") or new_id(),
        description=str(pick(raw, "description", "name", default="")).strip(),
        quantity=quantity,
        unit_price=unit_price,
        total=total,
    )


def normalize_items(raw: object) -> list[LineItem]:
    items: Iterable = as_list(raw)
    out: list[LineItem] = []
    for entry in items:
        if isinstance(entry, LineItem):
            out.append(entry)
        elif isinstance(entry, dict):
            out.append(normalize_item(entry))
        else:
            log.debug("line_item_skipped value=%r", entry)
    return out
