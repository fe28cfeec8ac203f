from __future__ import annotations

from decimal import Decimal

from mdc.config import BusinessRules
from mdc.domain.money import ZERO, money, to_decimal


def estimate_tax(net_profit: object, personal_allowance: object, rate: object) -> Decimal:
    """Flat-rate tax reserve: ``max(0, (net_profit - allowance) * rate)``.

    This is an estimate for setting money aside. There is no bracket
    progression, so it must not be used for filing or compliance.
    """
    taxable = to_decimal(net_profit) - to_decimal(personal_allowance)
    return money(max(ZERO, taxable * to_decimal(rate)))


def vat_threshold_progress(total_income: object, threshold: object) -> Decimal:
    """Share of the VAT registration threshold reached, as a percentage capped at 100."""
    limit = to_decimal(threshold)
    if limit <= 0:
        return Decimal("100.00")
    pct = to_decimal(total_income) / limit * 100
    return money(min(max(pct, ZERO), Decimal("100")))


class TaxService:
    def __init__(self, rules: BusinessRules | None = None):
        self.rules = rules or BusinessRules()

    def provision(self, net_profit: object) -> Decimal:
        return estimate_tax(net_profit, self.rules.personal_allowance, self.rules.tax_rate)

    def vat_progress(self, total_income: object) -> Decimal:
        return vat_threshold_progress(total_income, self.rules.vat_threshold)
