from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Optional

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.table import Table, TableStyleInfo

from mdc.config import BusinessRules
from mdc.domain.catalog import DEFAULT_CATALOG, Catalog
from mdc.domain.models import ExpenseItem, Order
from mdc.domain.money import ZERO, money, to_decimal
from mdc.domain.normalize import is_paid, normalize_items
from mdc.repositories.mappers import INVOICE_MAPPER
from mdc.services.expense_service import expense_totals
from mdc.services.tax_service import estimate_tax, vat_threshold_progress

log = logging.getLogger(__name__)

WHOLESALE = "wholesale"
RETAIL_SNACKS = "retail_snacks"
RETAIL_SERVICES = "retail_services"
UNCLASSIFIED = "unclassified"
CHANNELS = (WHOLESALE, RETAIL_SNACKS, RETAIL_SERVICES, UNCLASSIFIED)

KIND_SNACK = "snack"
KIND_SERVICE = "service"
KIND_UNCLASSIFIED = "unclassified"

UNNAMED_LINE = "Unclassified"

CHANNEL_LABELS = {
    WHOLESALE: "B2B Wholesale",
    RETAIL_SNACKS: "Retail Snacks",
    RETAIL_SERVICES: "Dog Care Services",
    UNCLASSIFIED: "Unclassified",
}

DATE_PRESETS = ("today", "7d", "30d", "this_month", "all")


@dataclass(frozen=True)
class ProductPerformance:
    name: str
    kind: str
    quantity: int
    revenue: Decimal


@dataclass(frozen=True)
class RevenueSummary:
    total_income: Decimal
    by_channel: dict[str, Decimal]
    by_product: tuple[ProductPerformance, ...]
    top_products: tuple[ProductPerformance, ...]
    service_performance: dict[str, Decimal]
    time_series: tuple[tuple[str, Decimal], ...]


@dataclass(frozen=True)
class DashboardStats:
    total_income: Decimal
    total_expenses: Decimal
    profit: Decimal
    by_channel: dict[str, Decimal]
    composition: tuple[tuple[str, Decimal], ...]
    board: tuple[ProductPerformance, ...]
    vat_progress: Decimal


@dataclass(frozen=True)
class ProfitAndLoss:
    wholesale_income: Decimal
    retail_snack_income: Decimal
    retail_service_income: Decimal
    unclassified_income: Decimal
    total_income: Decimal
    operating_expenses: Decimal
    losses: Decimal
    total_expenses: Decimal
    net_profit: Decimal
    tax_provision: Decimal
    net_after_tax: Decimal


def _coerce(invoice: object) -> Optional[Order]:
    if isinstance(invoice, Order):
        return invoice
    if isinstance(invoice, dict):
        return INVOICE_MAPPER.from_storage_row(invoice)
    log.debug("aggregate_skipped value=%r", invoice)
    return None


def _kind(name: str, catalog: Catalog) -> str:
    if catalog.is_service(name):
        return KIND_SERVICE
    if catalog.is_product(name):
        return KIND_SNACK
    return KIND_UNCLASSIFIED


def _channel(kind: str, wholesale: bool) -> str:
    if wholesale:
        return WHOLESALE
    if kind == KIND_SERVICE:
        return RETAIL_SERVICES
    if kind == KIND_SNACK:
        return RETAIL_SNACKS
    return UNCLASSIFIED


def paid_only(invoices: Iterable[object]) -> list[Order]:
    out = []
    for inv in invoices or ():
        record = _coerce(inv)
        if record is not None and is_paid(record.status):
            out.append(record)
    return out


def aggregate(invoices: Iterable[object], catalog: Catalog = DEFAULT_CATALOG, top_n: int = 5) -> RevenueSummary:
    """Group paid revenue by channel and by line name.

    Wholesale invoices credit the wholesale channel whatever they contain.
    Retail lines are split into services and snacks by catalog name; names
    the catalog does not know land in the unclassified channel, so channel
    totals always add up to the sum of paid line totals.
    """
    by_channel: dict[str, Decimal] = {c: ZERO for c in CHANNELS}
    revenue: dict[str, Decimal] = defaultdict(lambda: ZERO)
    quantity: dict[str, int] = defaultdict(int)
    kinds: dict[str, str] = {}
    series: list[tuple[str, Decimal]] = []

    for inv in paid_only(invoices):
        for item in normalize_items(inv.items):
            name = item.description or UNNAMED_LINE
            kind = _kind(item.description, catalog)
            line_total = to_decimal(item.total)
            by_channel[_channel(kind, bool(inv.is_wholesale))] += line_total
            revenue[name] += line_total
            quantity[name] += int(item.quantity)
            kinds[name] = kind
        series.append((inv.date, money(inv.total)))

    by_product = tuple(
        sorted(
            (ProductPerformance(n, kinds[n], quantity[n], money(revenue[n])) for n in revenue),
            key=lambda p: (-p.revenue, p.name),
        )
    )
    top = tuple(p for p in by_product if p.kind != KIND_SERVICE)[: max(top_n, 0)]
    services = {p.name: p.revenue for p in by_product if p.kind == KIND_SERVICE}
    channels = {c: money(v) for c, v in by_channel.items()}

    return RevenueSummary(
        total_income=money(sum(by_channel.values(), ZERO)),
        by_channel=channels,
        by_product=by_product,
        top_products=top,
        service_performance=services,
        time_series=tuple(sorted(series, key=lambda point: point[0])),
    )


def _parse_date(value: str) -> Optional[date]:
    try:
        return date.fromisoformat(str(value or "")[:10])
    except ValueError:
        return None


def filter_by_preset(invoices: Iterable[Order], preset: str, today: date | None = None) -> list[Order]:
    if preset not in DATE_PRESETS:
        raise ValueError(f"Unknown date preset: {preset}")
    records = [r for r in (_coerce(i) for i in invoices or ()) if r is not None]
    if preset == "all":
        return records
    today = today or date.today()
    if preset == "today":
        start = today
    elif preset == "7d":
        start = today - timedelta(days=7)
    elif preset == "30d":
        start = today - timedelta(days=30)
    else:
        start = today.replace(day=1)

    out = []
    for r in records:
        d = _parse_date(r.date)
        if d is None or d < start:
            continue
        if preset == "this_month" and (d.year, d.month) != (today.year, today.month):
            continue
        out.append(r)
    return out


def performance_board(summary: RevenueSummary, catalog: Catalog = DEFAULT_CATALOG, kind: str | None = None) -> tuple[ProductPerformance, ...]:
    """Every catalog product and service, zero-filled, best sellers first."""
    sold = {p.name: p for p in summary.by_product}
    board = []
    for entry_kind, entries in ((KIND_SNACK, catalog.products), (KIND_SERVICE, catalog.services)):
        for entry in entries:
            hit = sold.get(entry.name)
            board.append(
                ProductPerformance(
                    name=entry.name,
                    kind=entry_kind,
                    quantity=hit.quantity if hit else 0,
                    revenue=hit.revenue if hit else money(ZERO),
                )
            )
    if kind:
        board = [p for p in board if p.kind == kind]
    return tuple(sorted(board, key=lambda p: -p.revenue))


def dashboard(
    invoices: Iterable[object],
    expenses: Iterable[ExpenseItem],
    catalog: Catalog = DEFAULT_CATALOG,
    preset: str = "all",
    today: date | None = None,
    kind: str | None = None,
    rules: BusinessRules | None = None,
) -> DashboardStats:
    rules = rules or BusinessRules()
    summary = aggregate(filter_by_preset(invoices, preset, today), catalog)
    total_expenses = expense_totals(expenses).total
    composition = tuple(
        (CHANNEL_LABELS[c], summary.by_channel[c]) for c in CHANNELS if summary.by_channel[c] > 0
    )
    return DashboardStats(
        total_income=summary.total_income,
        total_expenses=total_expenses,
        profit=summary.total_income - total_expenses,
        by_channel=summary.by_channel,
        composition=composition,
        board=performance_board(summary, catalog, kind),
        vat_progress=vat_threshold_progress(summary.total_income, rules.vat_threshold),
    )


def profit_and_loss(
    invoices: Iterable[object],
    expenses: Iterable[ExpenseItem],
    catalog: Catalog = DEFAULT_CATALOG,
    rules: BusinessRules | None = None,
) -> ProfitAndLoss:
    rules = rules or BusinessRules()
    summary = aggregate(invoices, catalog)
    totals = expense_totals(expenses)
    net = summary.total_income - totals.total
    tax = estimate_tax(net, rules.personal_allowance, rules.tax_rate)
    return ProfitAndLoss(
        wholesale_income=summary.by_channel[WHOLESALE],
        retail_snack_income=summary.by_channel[RETAIL_SNACKS],
        retail_service_income=summary.by_channel[RETAIL_SERVICES],
        unclassified_income=summary.by_channel[UNCLASSIFIED],
        total_income=summary.total_income,
        operating_expenses=totals.operating,
        losses=totals.losses,
        total_expenses=totals.total,
        net_profit=net,
        tax_provision=tax,
        net_after_tax=net - tax,
    )


class ReportingService:
    def __init__(self, invoices_repo, expenses_repo, catalog: Catalog = DEFAULT_CATALOG, rules: BusinessRules | None = None):
        self.invoices = invoices_repo
        self.expenses = expenses_repo
        self.catalog = catalog
        self.rules = rules or BusinessRules()

    def revenue_summary(self, top_n: int = 5) -> RevenueSummary:
        return aggregate(self.invoices.get_all(), self.catalog, top_n)

    def dashboard(self, preset: str = "all", kind: str | None = None, today: date | None = None) -> DashboardStats:
        return dashboard(
            self.invoices.get_all(),
            self.expenses.get_all(),
            self.catalog,
            preset=preset,
            today=today,
            kind=kind,
            rules=self.rules,
        )

    def profit_and_loss(self) -> ProfitAndLoss:
        return profit_and_loss(self.invoices.get_all(), self.expenses.get_all(), self.catalog, self.rules)

    def export_ledger_excel(self, path: str | Path) -> Path:
        invoices = self.invoices.get_all()
        expenses = self.expenses.get_all()
        pnl = profit_and_loss(invoices, expenses, self.catalog, self.rules)
        summary = aggregate(invoices, self.catalog, top_n=0)

        wb = Workbook()

        def money_fmt(cell):
            cell.number_format = "#,##0.00"

        def bold_row(ws, r):
            for c in ws[r]:
                c.font = Font(bold=True)

        def set_widths(ws, widths: dict[str, int]):
            for col, w in widths.items():
                ws.column_dimensions[col].width = w

        def add_table(ws, name: str, end_row: int, end_col: int):
            ref = f"A1:{get_column_letter(end_col)}{end_row}"
            tab = Table(displayName=name, ref=ref)
            tab.tableStyleInfo = TableStyleInfo(name="TableStyleMedium9", showRowStripes=True, showColumnStripes=False)
            ws.add_table(tab)

        # -------- 1) Summary (P&L) --------
        ws = wb.active
        ws.title = "Summary"
        ws["A1"] = "Profit & Loss"
        ws["A1"].font = Font(bold=True, size=14)

        rows = [
            ("Wholesale sales (B2B snacks)", pnl.wholesale_income),
            ("Retail sales (B2C snacks)", pnl.retail_snack_income),
            ("Dog care services (B2C)", pnl.retail_service_income),
            ("Unclassified sales", pnl.unclassified_income),
            ("Total income", pnl.total_income),
            ("Operating expenses", pnl.operating_expenses),
            ("Business losses", pnl.losses),
            ("Net profit", pnl.net_profit),
            ("Estimated tax provision", pnl.tax_provision),
            ("Net after tax (estimate)", pnl.net_after_tax),
        ]
        for i, (label, val) in enumerate(rows):
            r = 3 + i
            ws[f"A{r}"] = label
            ws[f"B{r}"] = float(val)
            money_fmt(ws[f"B{r}"])
        set_widths(ws, {"A": 32, "B": 18})

        # -------- 2) Revenue by product --------
        ws2 = wb.create_sheet("Revenue by Product")
        ws2.append(["Name", "Kind", "Units", "Revenue"])
        bold_row(ws2, 1)
        for p in summary.by_product:
            ws2.append([p.name, p.kind, int(p.quantity), float(p.revenue)])
            money_fmt(ws2[f"D{ws2.max_row}"])
        set_widths(ws2, {"A": 34, "B": 14, "C": 8, "D": 16})
        if ws2.max_row >= 2:
            add_table(ws2, "RevenueByProduct", ws2.max_row, 4)

        # -------- 3) Paid invoices --------
        ws3 = wb.create_sheet("Paid Invoices")
        ws3.append(["Number", "Date", "Client", "Channel", "Subtotal", "Discount", "Total"])
        bold_row(ws3, 1)
        for inv in sorted(paid_only(invoices), key=lambda i: i.date):
            number = getattr(inv, "invoice_number", "") or inv.order_number
            subtotal = getattr(inv, "subtotal", inv.total)
            discount = getattr(inv, "discount_applied", None) or ZERO
            ws3.append([
                number, inv.date, inv.client_name,
                "B2B" if inv.is_wholesale else "Retail",
                float(subtotal), float(discount), float(inv.total),
            ])
            for col in ("E", "F", "G"):
                money_fmt(ws3[f"{col}{ws3.max_row}"])
        ws3.freeze_panes = "A2"
        set_widths(ws3, {"A": 16, "B": 12, "C": 28, "D": 10, "E": 14, "F": 14, "G": 14})
        if ws3.max_row >= 2:
            add_table(ws3, "PaidInvoices", ws3.max_row, 7)

        # -------- 4) Expenses --------
        ws4 = wb.create_sheet("Expenses")
        ws4.append(["Date", "Category", "Description", "Amount", "Loss"])
        bold_row(ws4, 1)
        for e in sorted(expenses, key=lambda e: e.date):
            ws4.append([e.date, e.category, e.description, float(e.amount), "yes" if e.is_loss else "no"])
            money_fmt(ws4[f"D{ws4.max_row}"])
        set_widths(ws4, {"A": 12, "B": 24, "C": 36, "D": 14, "E": 8})
        if ws4.max_row >= 2:
            add_table(ws4, "ExpenseLog", ws4.max_row, 5)

        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        wb.save(target)
        log.info("ledger_exported path=%s invoices=%s expenses=%s", target, len(invoices), len(expenses))
        return target
