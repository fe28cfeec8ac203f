from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Iterable, Mapping, Optional, Sequence

from mdc.config import BusinessRules
from mdc.domain.catalog import DEFAULT_CATALOG, PRICING_TIERS, Catalog
from mdc.domain.errors import ValidationError
from mdc.domain.models import LineItem, PricingTier
from mdc.domain.money import ZERO, money, to_int


@dataclass(frozen=True)
class Quote:
    total_units: int
    subtotal: Decimal
    tier: Optional[PricingTier]
    discount: Decimal
    total: Decimal

    @property
    def discount_rate(self) -> Decimal:
        return self.tier.discount_rate if self.tier else ZERO


@dataclass(frozen=True)
class PricedCart:
    lines: tuple[LineItem, ...]
    quote: Quote


def select_tier(total_units: int, tiers: Sequence[PricingTier] = PRICING_TIERS) -> PricingTier:
    """Highest tier whose minimum is reached; below every minimum the lowest tier is the floor.

    The floor means an empty or undersized cart still resolves to a tier.
    Callers gate order submission separately (see ``require_minimum_units``).
    """
    if not tiers:
        raise ValidationError("Pricing tier table is empty.")
    ordered = sorted(tiers, key=lambda t: t.min_units)
    for tier in reversed(ordered):
        if tier.min_units <= total_units:
            return tier
    return ordered[0]


def quote(subtotal: Decimal, total_units: int, tiers: Sequence[PricingTier] = PRICING_TIERS) -> Quote:
    tier = select_tier(total_units, tiers)
    sub = money(subtotal)
    discount = money(sub * tier.discount_rate)
    return Quote(total_units=total_units, subtotal=sub, tier=tier, discount=discount, total=sub - discount)


def quote_items(items: Iterable[LineItem], wholesale: bool, tiers: Sequence[PricingTier] = PRICING_TIERS) -> Quote:
    """Invoice totals: tier discount applies to wholesale invoices only."""
    items = list(items)
    subtotal = sum((it.total for it in items), ZERO)
    units = sum(int(it.quantity) for it in items)
    if wholesale:
        return quote(subtotal, units, tiers)
    sub = money(subtotal)
    return Quote(total_units=units, subtotal=sub, tier=None, discount=money(ZERO), total=sub)


def require_minimum_units(total_units: int, minimum: int) -> None:
    if total_units < minimum:
        raise ValidationError(f"Minimum order: {minimum} units.")


class PricingService:
    def __init__(
        self,
        catalog: Catalog = DEFAULT_CATALOG,
        tiers: Sequence[PricingTier] = PRICING_TIERS,
        rules: BusinessRules | None = None,
    ):
        self.catalog = catalog
        self.tiers = tuple(tiers)
        self.rules = rules or BusinessRules()

    def tier_for(self, total_units: int) -> PricingTier:
        return select_tier(total_units, self.tiers)

    def next_tier(self, total_units: int) -> Optional[PricingTier]:
        """Tier the customer would reach by adding units, if any."""
        above = [t for t in sorted(self.tiers, key=lambda t: t.min_units) if t.min_units > total_units]
        return above[0] if above else None

    def price_cart(self, cart: Mapping[str, object]) -> PricedCart:
        """cart: {product_id: qty}. Unknown products and non-positive quantities are ignored."""
        resolved = []
        units = 0
        base = ZERO
        for product_id, qty in cart.items():
            entry = self.catalog.product_by_id(str(product_id))
            q = to_int(qty)
            if entry is None or q <= 0:
                continue
            resolved.append((entry, q))
            units += q
            base += entry.price * q

        cart_quote = quote(base, units, self.tiers)
        factor = Decimal("1") - cart_quote.discount_rate
        # unit prices are charged in whole pence so the lines add up to the quote
        lines = tuple(LineItem.create(entry.name, q, money(entry.price * factor), id=entry.id) for entry, q in resolved)
        total = sum((line.total for line in lines), ZERO)
        cart_quote = replace(cart_quote, discount=cart_quote.subtotal - total, total=money(total))
        return PricedCart(lines=lines, quote=cart_quote)

    def quote_invoice(self, items: Iterable[LineItem], wholesale: bool) -> Quote:
        return quote_items(items, wholesale, self.tiers)

    def check_minimum(self, total_units: int) -> None:
        require_minimum_units(total_units, self.rules.min_wholesale_units)
