from datetime import date
from decimal import Decimal
from pathlib import Path

from openpyxl import load_workbook

from mdc.domain.models import ExpenseItem
from mdc.repositories.mappers import EXPENSE_MAPPER, INVOICE_MAPPER
from mdc.services.reporting_service import (
    RETAIL_SERVICES,
    RETAIL_SNACKS,
    UNCLASSIFIED,
    WHOLESALE,
    ReportingService,
    aggregate,
    dashboard,
    filter_by_preset,
    profit_and_loss,
)
from conftest import make_cache, make_repo


def _invoice(inv_id, items, status="Paid", wholesale=False, on="2024-05-10", total=None):
    rows = [{"description": d, "quantity": q, "unit_price": p} for d, q, p in items]
    return {
        "id": inv_id,
        "invoice_number": f"MDC-2024-{inv_id}",
        "client_name": "Client",
        "client_email": "c@x.com",
        "items": rows,
        "status": status,
        "is_wholesale": wholesale,
        "date": on,
        "total": total if total is not None else sum(q * p for _, q, p in items),
    }


INVOICES = [
    _invoice("1", [("Grooming", 1, 35), ("Premium Salmon Bites", 2, 6)]),
    _invoice("2", [("Pure Beef Cubes", 30, 5)], wholesale=True, on="2024-05-01"),
    _invoice("3", [("Mystery box", 1, 9.99), ("", 1, 1)]),
    _invoice("4", [("Dog Walking", 4, 15)], status="Draft"),
]


def test_channels_sum_to_total_income():
    summary = aggregate(INVOICES)
    assert summary.by_channel[RETAIL_SERVICES] == Decimal("35.00")
    assert summary.by_channel[RETAIL_SNACKS] == Decimal("12.00")
    assert summary.by_channel[WHOLESALE] == Decimal("150.00")
    assert summary.by_channel[UNCLASSIFIED] == Decimal("10.99")
    assert sum(summary.by_channel.values()) == summary.total_income == Decimal("207.99")


def test_unpaid_invoices_are_ignored():
    summary = aggregate(INVOICES)
    assert "Dog Walking" not in {p.name for p in summary.by_product}


def test_aggregation_is_idempotent():
    assert aggregate(INVOICES) == aggregate(INVOICES)


def test_malformed_records_do_not_break_aggregation():
    summary = aggregate([None, "junk", {"status": "paid", "items": "not json"}, {"status": "Paid"}] + INVOICES)
    assert summary.total_income == Decimal("207.99")


def test_blank_description_is_named_unclassified():
    summary = aggregate(INVOICES)
    names = {p.name: p for p in summary.by_product}
    assert names["Unclassified"].revenue == Decimal("1.00")
    assert names["Mystery box"].kind == "unclassified"


def test_top_products_exclude_services_and_time_series_is_sorted():
    summary = aggregate(INVOICES, top_n=2)
    assert [p.name for p in summary.top_products] == ["Pure Beef Cubes", "Premium Salmon Bites"]
    assert summary.service_performance == {"Grooming": Decimal("35.00")}
    assert [d for d, _ in summary.time_series] == ["2024-05-01", "2024-05-10", "2024-05-10"]


def test_date_presets():
    today = date(2024, 5, 12)
    assert len(filter_by_preset(INVOICES, "7d", today)) == 3
    assert len(filter_by_preset(INVOICES, "this_month", today)) == 4
    assert filter_by_preset(INVOICES, "today", today) == []


def test_dashboard_board_is_zero_filled():
    stats = dashboard(INVOICES, [], kind="service")
    assert {p.name for p in stats.board} == {"Dog Walking", "Home Sitting", "Grooming", "Pop-in Visit", "Dog Boarding"}
    assert stats.board[0].name == "Grooming"


def test_profit_and_loss_with_tax_provision():
    big = [_invoice("9", [("Grooming", 500, 35)])]
    expenses = [
        ExpenseItem("e1", "2024-05-01", "Eco packaging", "Bags", Decimal("400")),
        ExpenseItem("e2", "2024-05-02", "Premium ingredients", "Spoiled salmon", Decimal("100"), is_loss=True),
    ]
    pnl = profit_and_loss(big, expenses)
    assert pnl.total_income == Decimal("17500.00")
    assert pnl.total_expenses == Decimal("500.00")
    assert pnl.net_profit == Decimal("17000.00")
    # (17000 - 12570) * 0.20
    assert pnl.tax_provision == Decimal("886.00")
    assert pnl.net_after_tax == Decimal("16114.00")


def test_ledger_export_writes_all_sheets(tmp_path: Path):
    cache = make_cache(tmp_path)
    invoices = make_repo(tmp_path, INVOICE_MAPPER, cache=cache)
    expenses = make_repo(tmp_path, EXPENSE_MAPPER, cache=cache)
    for row in INVOICES:
        invoices.add(INVOICE_MAPPER.from_storage_row(row))
    expenses.add(ExpenseItem("e1", "2024-05-01", "UK logistics", "Courier", Decimal("20")))

    out = ReportingService(invoices, expenses).export_ledger_excel(tmp_path / "exports" / "ledger.xlsx")

    wb = load_workbook(out)
    assert wb.sheetnames == ["Summary", "Revenue by Product", "Paid Invoices", "Expenses"]
    summary = wb["Summary"]
    values = {summary[f"A{r}"].value: summary[f"B{r}"].value for r in range(3, 13)}
    assert values["Total income"] == 207.99
    assert values["Operating expenses"] == 20.0
    assert wb["Paid Invoices"].max_row == 4
