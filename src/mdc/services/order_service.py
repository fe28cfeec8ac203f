from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional

from mdc.domain.errors import NotFoundError, ValidationError
from mdc.domain.models import InvoiceStatus, LineItem, Order, new_id
from mdc.domain.money import ZERO, money
from mdc.domain.normalize import normalize_status

log = logging.getLogger("mdc.orders")

WHOLESALE_PREFIX = "WHS"
RETAIL_PREFIX = "MDC"

CHANNEL_ALL = "all"
CHANNEL_WHOLESALE = "wholesale"
CHANNEL_RETAIL = "retail"


@dataclass(frozen=True)
class OrderStats:
    awaiting_processing: int
    total_income: Decimal


def order_number(wholesale: bool, on: date | None = None) -> str:
    prefix = WHOLESALE_PREFIX if wholesale else RETAIL_PREFIX
    return f"{prefix}-{(on or date.today()).year}-{1000 + secrets.randbelow(9000)}"


def order_stats(orders: Iterable[Order]) -> OrderStats:
    orders = list(orders)
    return OrderStats(
        awaiting_processing=sum(1 for o in orders if o.status is InvoiceStatus.PAID),
        total_income=money(sum((o.total for o in orders), ZERO)),
    )


class OrderService:
    def __init__(self, repo):
        self.repo = repo

    def list_orders(self) -> list[Order]:
        return self.repo.get_all()

    def get(self, order_id: str) -> Order:
        order = self.repo.get(order_id)
        if order is None:
            raise NotFoundError("Order not found.")
        return order

    def create(
        self,
        client_name: str,
        client_email: str,
        items: Iterable[LineItem],
        total: object,
        wholesale: bool,
        status: InvoiceStatus = InvoiceStatus.PAID,
        payment_id: Optional[str] = None,
        shipping_address: Optional[str] = None,
        number: Optional[str] = None,
        order_id: Optional[str] = None,
    ) -> Order:
        items = tuple(items)
        if not items:
            raise ValidationError("Order has no items.")
        if not (client_email or "").strip():
            raise ValidationError("Client email is required.")
        today = date.today()
        order = Order(
            id=order_id or new_id(),
            order_number=number or order_number(wholesale, today),
            client_name=(client_name or "").strip(),
            client_email=client_email.strip(),
            items=items,
            total=money(total),
            status=status,
            date=today.isoformat(),
            is_wholesale=bool(wholesale),
            payment_id=payment_id,
            shipping_address=shipping_address,
            created_at=datetime.now().isoformat(timespec="seconds"),
        )
        saved = self.repo.save(order)
        log.info("order_saved number=%s total=%s wholesale=%s", saved.order_number, saved.total, saved.is_wholesale)
        return saved

    def update_status(self, order_id: str, status: object) -> Order:
        new_status = normalize_status(status)
        updated = self.repo.update(order_id, status=new_status)
        log.info("order_status number=%s status=%s", updated.order_number, new_status.value)
        return updated

    def filter(self, channel: str = CHANNEL_ALL, search: str = "") -> list[Order]:
        if channel not in (CHANNEL_ALL, CHANNEL_WHOLESALE, CHANNEL_RETAIL):
            raise ValidationError(f"Unknown channel: {channel}")
        q = (search or "").strip().lower()
        out = []
        for o in self.list_orders():
            if channel == CHANNEL_WHOLESALE and not o.is_wholesale:
                continue
            if channel == CHANNEL_RETAIL and o.is_wholesale:
                continue
            if q and q not in o.client_name.lower() and q not in o.order_number.lower():
                continue
            out.append(o)
        return out

    def stats(self) -> OrderStats:
        return order_stats(self.list_orders())

    def history_for(self, client_email: str) -> list[Order]:
        """Orders placed by one distributor, newest first."""
        email = (client_email or "").strip().lower()
        orders = [o for o in self.list_orders() if o.client_email.lower() == email]
        return sorted(orders, key=lambda o: o.created_at or o.date, reverse=True)
