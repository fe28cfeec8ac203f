from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Mapping, Optional
from urllib.parse import quote as url_quote

from mdc.domain.errors import PaymentError, ValidationError
from mdc.domain.models import Client, Invoice, InvoiceStatus, NotificationType, Order, UserRole, new_id
from mdc.domain.money import money
from mdc.domain.normalize import normalize_items
from mdc.repositories.contracts import PaymentGateway
from mdc.repositories.mappers import INVOICE_MAPPER, ORDER_MAPPER
from mdc.repositories.unit_of_work import CommandLog, CommandUnitOfWork
from mdc.services.inventory_service import InventoryService
from mdc.services.notification_service import NotificationService
from mdc.services.order_service import OrderService, order_number
from mdc.services.pricing_service import PricingService

log = logging.getLogger("mdc.orders")

CHECKOUT = "checkout"
ADMIN_WHATSAPP = "44759456200"


@dataclass(frozen=True)
class CheckoutResult:
    command_id: str
    order: Order
    invoice: Invoice
    payment_id: str

    @property
    def whatsapp_link(self) -> str:
        text = (
            f"New paid order - MDC B2B\n"
            f"Order: {self.order.order_number}\n"
            f"Client: {self.order.client_name}\n"
            f"Email: {self.order.client_email}\n"
            f"Total: £{self.order.total:.2f}"
        )
        return f"https://wa.me/{ADMIN_WHATSAPP}?text={url_quote(text)}"


class CheckoutService:
    """Distributor checkout: price, gate, pay, then record the order as a resumable command.

    Steps are keyed on ids fixed in the command payload, so replaying a
    command upserts the same order and invoice rows instead of duplicating them.
    """

    def __init__(
        self,
        pricing: PricingService,
        orders: OrderService,
        invoices_repo,
        inventory: InventoryService,
        notifications: NotificationService,
        command_log: CommandLog,
    ):
        self.pricing = pricing
        self.orders = orders
        self.invoices_repo = invoices_repo
        self.inventory = inventory
        self.notifications = notifications
        self.command_log = command_log

    def checkout(self, cart: Mapping[str, object], customer: Client, payment: PaymentGateway) -> CheckoutResult:
        priced = self.pricing.price_cart(cart)
        if not priced.lines:
            raise ValidationError("Cart is empty.")
        self.pricing.check_minimum(priced.quote.total_units)

        billing_name = customer.business_name or customer.name
        try:
            payment_id = payment.tokenize(priced.quote.total, billing_name)
        except PaymentError:
            log.warning("payment_declined customer=%s total=%s", customer.email, priced.quote.total)
            raise
        if not payment_id:
            raise PaymentError("Payment was not confirmed.")

        today = date.today().isoformat()
        number = order_number(True)
        order = Order(
            id=new_id(),
            order_number=number,
            client_name=billing_name,
            client_email=customer.email,
            items=priced.lines,
            total=priced.quote.total,
            status=InvoiceStatus.PAID,
            date=today,
            is_wholesale=True,
            payment_id=payment_id,
            shipping_address=customer.address_line1 or None,
        )
        invoice = Invoice(
            id=new_id(),
            order_number=number,
            invoice_number=number,
            client_name=billing_name,
            client_email=customer.email,
            client_phone="-",
            client_address="B2B Purchase",
            client_city_postcode="-",
            items=priced.lines,
            subtotal=priced.quote.subtotal,
            discount_applied=priced.quote.discount,
            total=priced.quote.total,
            status=InvoiceStatus.PAID,
            date=today,
            service_date=today,
            due_date=today,
            is_wholesale=True,
            payment_id=payment_id,
            payment_method="card",
            distributor_id=customer.id,
        )
        log.info("checkout_paid number=%s total=%s payment=%s", number, order.total, payment_id)

        payload = {
            "order": ORDER_MAPPER.to_storage_row(order),
            "invoice": INVOICE_MAPPER.to_storage_row(invoice),
        }
        command_id = self._run(payload)
        return CheckoutResult(command_id=command_id, order=order, invoice=invoice, payment_id=payment_id)

    def _run(self, payload: dict, command_id: Optional[str] = None) -> str:
        order = ORDER_MAPPER.from_storage_row(payload["order"])
        invoice = INVOICE_MAPPER.from_storage_row(payload["invoice"])

        def consume_inventory() -> None:
            for line in normalize_items(order.items):
                if line.quantity > 0:
                    self.inventory.consume(line.description, line.quantity, allow_partial=True)

        def notify_admin() -> None:
            self.notifications.push(
                NotificationType.ORDER,
                "New wholesale order",
                f"{order.client_name} paid £{money(order.total):.2f} ({order.order_number}).",
                target_role=UserRole.ADMIN.value,
            )

        with CommandUnitOfWork(self.command_log, CHECKOUT, payload, command_id) as uow:
            uow.step("consume_inventory", consume_inventory)
            uow.step("save_order", lambda: self.orders.repo.save(order))
            uow.step("save_invoice", lambda: self.invoices_repo.save(invoice))
            uow.step("notify_admin", notify_admin)
        log.info("checkout_recorded command=%s number=%s", uow.command_id, order.order_number)
        return str(uow.command_id)

    def replay_pending(self) -> list[str]:
        """Resume checkouts whose steps did not all complete; returns the ids that finished."""
        finished = []
        for command in self.command_log.unfinished(CHECKOUT):
            try:
                finished.append(self._run(command.payload, command.id))
            except Exception as e:
                # leave it failed in the log for the next replay
                log.error("checkout_replay_failed command=%s error=%s", command.id, e)
        return finished
