from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from mdc.domain.models import CatalogEntry, PricingTier

SNACK = "Snack"
SERVICE = "Service"

PRICING_TIERS: tuple[PricingTier, ...] = (
    PricingTier("Silver", 6, 20, Decimal("0.15")),
    PricingTier("Gold", 21, 50, Decimal("0.25")),
    PricingTier("Platinum", 51, 100, Decimal("0.35")),
    PricingTier("Diamond", 101, 9999, Decimal("0.45")),
)

PRODUCTS: tuple[CatalogEntry, ...] = (
    CatalogEntry("p1", "Premium Salmon Bites", Decimal("6.00"), SNACK),
    CatalogEntry("p2", "Gourmet Lamb Tendons", Decimal("5.50"), SNACK),
    CatalogEntry("p3", "Pure Beef Cubes", Decimal("5.00"), SNACK),
    CatalogEntry("p4", "Chicken Breast Fillets", Decimal("5.00"), SNACK),
    CatalogEntry("p5", "Organic Liver Crisps", Decimal("5.00"), SNACK),
    CatalogEntry("p6", "Nutri-Crunch Veggie Mix", Decimal("4.50"), SNACK),
)

SERVICES: tuple[CatalogEntry, ...] = (
    CatalogEntry("s1", "Dog Walking", Decimal("15"), SERVICE),
    CatalogEntry("s2", "Home Sitting", Decimal("45"), SERVICE),
    CatalogEntry("s3", "Grooming", Decimal("35"), SERVICE),
    CatalogEntry("s4", "Pop-in Visit", Decimal("12"), SERVICE),
    CatalogEntry("s5", "Dog Boarding", Decimal("35"), SERVICE),
)

EXPENSE_CATEGORIES: tuple[str, ...] = (
    "Premium ingredients",
    "Eco packaging",
    "Marketing & social",
    "UK logistics",
    "Insurance & other",
)


@dataclass(frozen=True)
class Catalog:
    products: tuple[CatalogEntry, ...] = PRODUCTS
    services: tuple[CatalogEntry, ...] = SERVICES

    def product_by_id(self, product_id: str) -> CatalogEntry | None:
        return next((p for p in self.products if p.id == product_id), None)

    def is_service(self, name: str) -> bool:
        return any(s.name == name for s in self.services)

    def is_product(self, name: str) -> bool:
        return any(p.name == name for p in self.products)


DEFAULT_CATALOG = Catalog()
