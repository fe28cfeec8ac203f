from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path

import pytest

from mdc.config import AppPaths
from mdc.application.container import build_container
from mdc.domain.errors import PaymentError, ValidationError
from mdc.domain.models import Client, ClientStatus, InvoiceStatus, UserRole
from mdc.repositories.unit_of_work import DONE
from mdc.services.reporting_service import aggregate
from conftest import MemoryRemote


class FakeGateway:
    def __init__(self, token="pm_test_123", error=None):
        self.token = token
        self.error = error
        self.charged = []

    def tokenize(self, amount, billing_name):
        if self.error:
            raise self.error
        self.charged.append((amount, billing_name))
        return self.token


def _paths(tmp_path: Path) -> AppPaths:
    return AppPaths(
        base_dir=tmp_path,
        cache_db_path=tmp_path / "cache.db",
        logs_dir=tmp_path / "logs",
        exports_dir=tmp_path / "exports",
    )


DISTRIBUTOR = Client(
    id="d1",
    name="Sam",
    email="shop@example.com",
    business_name="Paws Shop",
    role=UserRole.DISTRIBUTOR,
    status=ClientStatus.APPROVED,
    address_line1="1 High St",
)


def test_checkout_records_order_invoice_stock_and_notification(tmp_path: Path):
    remote = MemoryRemote()
    app = build_container(_paths(tmp_path), remote=remote)
    soon = date.today() + timedelta(days=20)
    later = date.today() + timedelta(days=90)
    app.inventory.add_batch("Pure Beef Cubes", 5, "2", batch_number="L-1001", expiry_date=later)
    app.inventory.add_batch("Pure Beef Cubes", 10, "2", batch_number="L-1002", expiry_date=soon)
    gateway = FakeGateway()

    result = app.checkout.checkout({"p3": 12, "p1": 10}, DISTRIBUTOR, gateway)

    # 12 * 5.00 + 10 * 6.00 = 120.00, Gold tier 25%
    assert result.order.total == Decimal("90.00")
    assert gateway.charged == [(Decimal("90.00"), "Paws Shop")]
    assert result.order.order_number.startswith("WHS-")
    assert result.invoice.invoice_number == result.order.order_number
    assert result.invoice.subtotal == Decimal("120.00")
    assert result.invoice.discount_applied == Decimal("30.00")
    assert "wa.me" in result.whatsapp_link

    [order] = app.orders.history_for("shop@example.com")
    assert order.status is InvoiceStatus.PAID
    assert order.payment_id == "pm_test_123"
    assert app.invoices.for_distributor("d1")[0].id == result.invoice.id

    stock = {i.batch_number: i.quantity for i in app.inventory.list_items()}
    assert stock == {"L-1002": 0, "L-1001": 3}

    assert app.notifications.unread_count("admin") == 1
    assert app.command_log.get(result.command_id).status == DONE


def test_checkout_below_minimum_is_rejected_before_payment(tmp_path: Path):
    app = build_container(_paths(tmp_path), remote=MemoryRemote())
    gateway = FakeGateway()

    with pytest.raises(ValidationError, match="Minimum order"):
        app.checkout.checkout({"p1": 5}, DISTRIBUTOR, gateway)
    assert gateway.charged == []
    assert app.orders.list_orders() == []


def test_declined_payment_saves_nothing(tmp_path: Path):
    app = build_container(_paths(tmp_path), remote=MemoryRemote())

    with pytest.raises(PaymentError):
        app.checkout.checkout({"p1": 6}, DISTRIBUTOR, FakeGateway(error=PaymentError("card declined")))
    assert app.orders.list_orders() == []
    assert app.command_log.unfinished() == []


def test_interrupted_checkout_resumes_without_duplicates(tmp_path: Path, monkeypatch):
    remote = MemoryRemote()
    app = build_container(_paths(tmp_path), remote=remote)

    real_push = app.notifications.push

    def down(*args, **kwargs):
        raise ConnectionError("notifications unavailable")

    monkeypatch.setattr(app.notifications, "push", down)
    with pytest.raises(ConnectionError):
        app.checkout.checkout({"p2": 8}, DISTRIBUTOR, FakeGateway())

    [pending] = app.command_log.unfinished("checkout")
    assert pending.completed_steps == frozenset({"consume_inventory", "save_order", "save_invoice"})

    monkeypatch.setattr(app.notifications, "push", real_push)
    assert app.checkout.replay_pending() == [pending.id]

    assert len(remote.tables["orders"]) == 1
    assert len(remote.tables["invoices"]) == 1
    assert app.notifications.unread_count("admin") == 1
    assert app.checkout.replay_pending() == []


def test_reported_income_matches_amount_charged(tmp_path: Path):
    app = build_container(_paths(tmp_path), remote=MemoryRemote())
    gateway = FakeGateway()

    result = app.checkout.checkout({"p2": 7}, DISTRIBUTOR, gateway)

    [(charged, _)] = gateway.charged
    [invoice] = app.invoices.list_invoices()
    assert sum(line.total for line in invoice.items) == charged == invoice.total == result.order.total
    assert aggregate(app.invoices.list_invoices()).total_income == charged
