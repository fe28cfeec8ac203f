from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from mdc.config import BusinessRules
from mdc.domain.errors import NotFoundError, ValidationError
from mdc.domain.models import Client, Invoice, InvoiceStatus, LineItem, UserRole, new_id
from mdc.domain.normalize import normalize_items, normalize_status
from mdc.services.order_service import order_number
from mdc.services.pricing_service import PricingService, Quote

log = logging.getLogger("mdc.orders")


@dataclass
class InvoiceDraft:
    """Editable invoice header plus lines; totals are always derived from the lines."""

    client_name: str = ""
    client_email: str = ""
    client_phone: str = ""
    client_address: str = ""
    client_city_postcode: str = ""
    wholesale: bool = False
    invoice_date: date = field(default_factory=date.today)
    service_date: Optional[date] = None
    due_date: Optional[date] = None
    invoice_number: str = ""
    items: list[LineItem] = field(default_factory=list)
    is_vat_invoice: bool = False
    payment_method: Optional[str] = None
    distributor_id: Optional[str] = None

    def add_line(self, description: str, quantity: object, unit_price: object) -> LineItem:
        line = LineItem.create(description, quantity, unit_price)
        self.items.append(line)
        return line

    def edit_line(self, line_id: str, quantity: object = None, unit_price: object = None) -> LineItem:
        for idx, line in enumerate(self.items):
            if line.id != line_id:
                continue
            if quantity is not None:
                line = line.with_quantity(quantity)
            if unit_price is not None:
                line = line.with_unit_price(unit_price)
            self.items[idx] = line
            return line
        raise NotFoundError("Line not found.")

    def remove_line(self, line_id: str) -> None:
        self.items = [line for line in self.items if line.id != line_id]


class InvoiceService:
    def __init__(self, repo, pricing: PricingService, rules: BusinessRules | None = None):
        self.repo = repo
        self.pricing = pricing
        self.rules = rules or BusinessRules()

    def new_draft(self, wholesale: bool = False, today: date | None = None) -> InvoiceDraft:
        today = today or date.today()
        return InvoiceDraft(
            wholesale=wholesale,
            invoice_date=today,
            service_date=today,
            due_date=today + timedelta(days=self.rules.invoice_due_days),
            invoice_number=order_number(wholesale, today),
        )

    def draft_for_client(self, client: Client, today: date | None = None) -> InvoiceDraft:
        wholesale = client.role is UserRole.DISTRIBUTOR
        draft = self.new_draft(wholesale, today)
        draft.client_name = client.business_name or client.name
        draft.client_email = client.email
        draft.client_phone = client.phone
        draft.client_address = client.address_line1
        draft.client_city_postcode = client.postcode
        if wholesale:
            draft.distributor_id = client.id
        return draft

    def totals(self, draft: InvoiceDraft) -> Quote:
        return self.pricing.quote_invoice(draft.items, draft.wholesale)

    def build(self, draft: InvoiceDraft, status: InvoiceStatus = InvoiceStatus.PAID) -> Invoice:
        if not draft.client_name.strip() or not draft.client_email.strip():
            raise ValidationError("Client name and email are required.")
        items = tuple(normalize_items(draft.items))
        if not items:
            raise ValidationError("Invoice has no items.")
        q = self.pricing.quote_invoice(items, draft.wholesale)
        number = draft.invoice_number or order_number(draft.wholesale, draft.invoice_date)
        issued = draft.invoice_date
        return Invoice(
            id=new_id(),
            order_number=number,
            invoice_number=number,
            client_name=draft.client_name.strip(),
            client_email=draft.client_email.strip(),
            client_phone=draft.client_phone,
            client_address=draft.client_address,
            client_city_postcode=draft.client_city_postcode,
            items=items,
            subtotal=q.subtotal,
            discount_applied=q.discount if draft.wholesale else None,
            total=q.total,
            status=status,
            date=issued.isoformat(),
            service_date=(draft.service_date or issued).isoformat(),
            due_date=(draft.due_date or issued + timedelta(days=self.rules.invoice_due_days)).isoformat(),
            is_wholesale=draft.wholesale,
            is_vat_invoice=draft.is_vat_invoice,
            payment_method=draft.payment_method,
            distributor_id=draft.distributor_id,
            created_at=datetime.now().isoformat(timespec="seconds"),
        )

    def save_draft(self, draft: InvoiceDraft, status: InvoiceStatus = InvoiceStatus.PAID) -> Invoice:
        return self.save(self.build(draft, status))

    def save(self, invoice: Invoice) -> Invoice:
        saved = self.repo.save(invoice)
        log.info("invoice_saved number=%s total=%s status=%s", saved.invoice_number, saved.total, saved.status.value)
        return saved

    def list_invoices(self) -> list[Invoice]:
        return self.repo.get_all()

    def get(self, invoice_id: str) -> Invoice:
        inv = self.repo.get(invoice_id)
        if inv is None:
            raise NotFoundError("Invoice not found.")
        return inv

    def mark_status(self, invoice_id: str, status: object) -> Invoice:
        self.get(invoice_id)
        new_status = normalize_status(status)
        updated = self.repo.update(invoice_id, status=new_status)
        log.info("invoice_status number=%s status=%s", updated.invoice_number, new_status.value)
        return updated

    def delete(self, invoice_id: str) -> None:
        self.get(invoice_id)
        self.repo.delete(invoice_id)
        log.info("invoice_deleted id=%s", invoice_id)

    def search(self, text: str, invoices: Iterable[Invoice] | None = None) -> list[Invoice]:
        q = (text or "").strip().lower()
        pool = self.list_invoices() if invoices is None else list(invoices)
        return [i for i in pool if q in i.client_name.lower() or q in i.invoice_number.lower()]

    def for_distributor(self, distributor_id: str) -> list[Invoice]:
        return self.repo.find("distributor_id", distributor_id)
