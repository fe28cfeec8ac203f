from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path

import pytest

from mdc.domain.catalog import PRODUCTS
from mdc.domain.errors import InsufficientStockError, ValidationError
from mdc.repositories.mappers import EXPENSE_MAPPER, INVENTORY_MAPPER
from mdc.services.expense_service import ExpenseService
from mdc.services.inventory_service import EXPIRED, EXPIRING, OK, UNKNOWN, InventoryService, expiry_status
from conftest import make_repo


def test_new_batch_gets_number_and_shelf_life(tmp_path: Path):
    inv = InventoryService(make_repo(tmp_path, INVENTORY_MAPPER))
    item = inv.add_batch("Organic Liver Crisps", 40, "1.80", production_date=date(2024, 1, 1))

    assert item.batch_number.startswith("L-") and len(item.batch_number) == 6
    assert item.production_date == "2024-01-01"
    assert item.expiry_date == "2024-06-29"
    assert item.reorder_level == 10


def test_catalog_batch_uses_cost_ratio(tmp_path: Path):
    inv = InventoryService(make_repo(tmp_path, INVENTORY_MAPPER))
    item = inv.add_catalog_batch(PRODUCTS[0], 20)
    assert item.unit_cost == Decimal("2.40")
    assert item.reorder_level == 15


def test_batch_validation(tmp_path: Path):
    inv = InventoryService(make_repo(tmp_path, INVENTORY_MAPPER))
    with pytest.raises(ValidationError):
        inv.add_batch("", 1, 1)
    with pytest.raises(ValidationError):
        inv.add_batch("Bags", -1, 1, category="Packaging")
    with pytest.raises(ValidationError):
        inv.add_batch("Bags", 1, 1, category="Toys")


def test_expiry_states(tmp_path: Path):
    inv = InventoryService(make_repo(tmp_path, INVENTORY_MAPPER))
    today = date(2024, 6, 1)
    old = inv.add_batch("A", 1, 1, production_date=date(2024, 1, 1), expiry_date=date(2024, 5, 31))
    near = inv.add_batch("B", 1, 1, production_date=date(2024, 1, 1), expiry_date=date(2024, 7, 1))
    far = inv.add_batch("C", 1, 1, production_date=date(2024, 1, 1), expiry_date=date(2024, 9, 1))

    assert expiry_status(old, today).state == EXPIRED
    assert expiry_status(near, today).state == EXPIRING
    assert expiry_status(near, today).days_left == 30
    assert expiry_status(far, today).state == OK
    assert expiry_status(inv.update_item(far.id, expiry_date=None), today).state == UNKNOWN


def test_summary_and_critical_stock(tmp_path: Path):
    inv = InventoryService(make_repo(tmp_path, INVENTORY_MAPPER))
    inv.add_batch("Salmon", 10, "2.50")
    inv.add_batch("Bags", 100, "0.10", category="Packaging")

    summary = inv.summary()
    assert summary.total_value == Decimal("35.00")
    assert summary.low_stock_count == 1
    assert [i.name for i in inv.critical_items()] == ["Salmon"]
    assert [i.name for i in inv.search("sal")] == ["Salmon"]


def test_consume_takes_soonest_expiry_and_skips_expired(tmp_path: Path):
    inv = InventoryService(make_repo(tmp_path, INVENTORY_MAPPER))
    today = date.today()
    start = today - timedelta(days=200)
    inv.add_batch("Beef", 50, 1, batch_number="L-0001", production_date=start, expiry_date=today - timedelta(days=1))
    inv.add_batch("Beef", 4, 1, batch_number="L-0002", expiry_date=today + timedelta(days=10))
    inv.add_batch("Beef", 9, 1, batch_number="L-0003", expiry_date=today + timedelta(days=60))

    inv.consume("Beef", 6)
    stock = {i.batch_number: i.quantity for i in inv.list_items()}
    assert stock == {"L-0001": 50, "L-0002": 0, "L-0003": 7}

    with pytest.raises(InsufficientStockError, match="Available: 7") as shortfall:
        inv.consume("Beef", 8)
    assert (shortfall.value.requested, shortfall.value.available) == (8, 7)
    assert shortfall.value.code == "insufficient_stock"
    inv.consume("Beef", 8, allow_partial=True)
    assert min(i.quantity for i in inv.list_items()) == 0


def test_expenses_totals_and_search(tmp_path: Path):
    svc = ExpenseService(make_repo(tmp_path, EXPENSE_MAPPER))
    svc.add_expense("Vacuum bags", "30.005", "Eco packaging")
    loss = svc.add_expense("Spoiled batch", 12, "Premium ingredients", is_loss=True)

    totals = svc.totals()
    assert totals.operating == Decimal("30.01")
    assert totals.losses == Decimal("12.00")
    assert totals.total == Decimal("42.01")
    assert [e.description for e in svc.search("eco")] == ["Vacuum bags"]

    svc.edit_expense(loss.id, "Spoiled batch", 15, "Premium ingredients", is_loss=True)
    assert svc.totals().losses == Decimal("15.00")
    svc.remove_expense(loss.id)
    assert svc.totals().losses == Decimal("0.00")

    with pytest.raises(ValidationError):
        svc.add_expense("Nothing", 0, "UK logistics")
