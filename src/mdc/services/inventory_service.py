from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, replace
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from mdc.config import BusinessRules
from mdc.domain.catalog import CatalogEntry
from mdc.domain.errors import InsufficientStockError, NotFoundError, ValidationError
from mdc.domain.models import InventoryItem, new_id
from mdc.domain.money import ZERO, money, to_decimal

log = logging.getLogger(__name__)

INVENTORY_CATEGORIES = ("Ingredient", "Snack", "Packaging")

EXPIRED = "expired"
EXPIRING = "expiring"
OK = "ok"
UNKNOWN = "unknown"

# share of retail price used as default batch cost for catalog snacks
DEFAULT_COST_RATIO = Decimal("0.40")


@dataclass(frozen=True)
class ExpiryStatus:
    state: str
    days_left: Optional[int]


@dataclass(frozen=True)
class InventorySummary:
    total_value: Decimal
    low_stock_count: int


def _parse(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def expiry_status(item: InventoryItem, today: date | None = None, warning_days: int = 30) -> ExpiryStatus:
    expiry = _parse(item.expiry_date)
    if expiry is None:
        return ExpiryStatus(UNKNOWN, None)
    days = (expiry - (today or date.today())).days
    if days < 0:
        return ExpiryStatus(EXPIRED, days)
    if days <= warning_days:
        return ExpiryStatus(EXPIRING, days)
    return ExpiryStatus(OK, days)


def is_critical(item: InventoryItem) -> bool:
    return int(item.quantity) <= int(item.reorder_level)


def new_batch_number() -> str:
    return f"L-{1000 + secrets.randbelow(9000)}"


class InventoryService:
    def __init__(self, repo, rules: BusinessRules | None = None):
        self.repo = repo
        self.rules = rules or BusinessRules()

    def list_items(self) -> list[InventoryItem]:
        return self.repo.get_all()

    def search(self, text: str) -> list[InventoryItem]:
        q = (text or "").strip().lower()
        return [i for i in self.list_items() if q in i.name.lower()]

    def add_batch(
        self,
        name: str,
        quantity: int,
        unit_cost: object,
        unit: str = "Pack 100g",
        category: str = "Snack",
        reorder_level: int | None = None,
        batch_number: str | None = None,
        production_date: date | None = None,
        expiry_date: date | None = None,
    ) -> InventoryItem:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Name is required.")
        if int(quantity) < 0:
            raise ValidationError("Quantity must be >= 0.")
        cost = to_decimal(unit_cost)
        if cost < 0:
            raise ValidationError("Unit cost must be >= 0.")
        if category not in INVENTORY_CATEGORIES:
            raise ValidationError(f"Unknown category: {category}")

        produced = production_date or date.today()
        expires = expiry_date or produced + timedelta(days=self.rules.default_shelf_life_days)
        if expires < produced:
            raise ValidationError("Expiry date must be after production date.")

        item = InventoryItem(
            id=new_id(),
            name=name,
            quantity=int(quantity),
            unit=unit,
            unit_cost=cost,
            reorder_level=self.rules.default_reorder_level if reorder_level is None else int(reorder_level),
            category=category,
            batch_number=batch_number or new_batch_number(),
            production_date=produced.isoformat(),
            expiry_date=expires.isoformat(),
        )
        saved = self.repo.add(item)
        log.info("batch_added name=%s batch=%s qty=%s", saved.name, saved.batch_number, saved.quantity)
        return saved

    def add_catalog_batch(self, entry: CatalogEntry, quantity: int, **kwargs) -> InventoryItem:
        """Batch of a catalog snack with the default cost ratio and a higher reorder target."""
        kwargs.setdefault("unit_cost", money(entry.price * DEFAULT_COST_RATIO))
        kwargs.setdefault("reorder_level", 15)
        return self.add_batch(entry.name, quantity, category="Snack", **kwargs)

    def update_item(self, item_id: str, **changes) -> InventoryItem:
        if "quantity" in changes and int(changes["quantity"]) < 0:
            raise ValidationError("Quantity must be >= 0.")
        return self.repo.update(item_id, **changes)

    def delete_item(self, item_id: str) -> None:
        if self.repo.get(item_id) is None:
            raise NotFoundError("Inventory item not found.")
        self.repo.delete(item_id)

    def summary(self) -> InventorySummary:
        items = self.list_items()
        value = sum((to_decimal(i.unit_cost) * int(i.quantity) for i in items), ZERO)
        return InventorySummary(total_value=money(value), low_stock_count=sum(1 for i in items if is_critical(i)))

    def critical_items(self) -> list[InventoryItem]:
        return sorted((i for i in self.list_items() if is_critical(i)), key=lambda i: i.quantity)

    def expiry_report(self, today: date | None = None) -> list[tuple[InventoryItem, ExpiryStatus]]:
        return [(i, expiry_status(i, today, self.rules.expiry_warning_days)) for i in self.list_items()]

    def consume(self, name: str, quantity: int, today: date | None = None, allow_partial: bool = False) -> list[InventoryItem]:
        """Take ``quantity`` units of ``name`` from stock, soonest-expiring unexpired batch first.

        With ``allow_partial`` a shortfall takes whatever is left instead of raising;
        batches never go below zero either way.
        """
        qty = int(quantity)
        if qty <= 0:
            raise ValidationError("Quantity to consume must be > 0.")
        today = today or date.today()
        batches = [
            i for i in self.list_items()
            if i.name == name and i.quantity > 0 and expiry_status(i, today).state != EXPIRED
        ]
        on_hand = sum(i.quantity for i in batches)
        if on_hand < qty:
            if not allow_partial:
                raise InsufficientStockError(name, qty, on_hand)
            log.warning("stock_shortfall name=%s requested=%s available=%s", name, qty, on_hand)
            qty = on_hand

        batches.sort(key=lambda i: (_parse(i.expiry_date) or date.max, i.batch_number or ""))
        remaining = qty
        touched = []
        for batch in batches:
            if remaining == 0:
                break
            take = min(batch.quantity, remaining)
            touched.append(self.repo.save(replace(batch, quantity=batch.quantity - take)))
            remaining -= take
        log.info("stock_consumed name=%s qty=%s batches=%s", name, qty, len(touched))
        return touched
