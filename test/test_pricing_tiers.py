from decimal import Decimal

import pytest

from mdc.domain.catalog import PRICING_TIERS
from mdc.domain.errors import ValidationError
from mdc.domain.models import LineItem
from mdc.services.pricing_service import PricingService, quote, quote_items, select_tier


@pytest.mark.parametrize(
    "units, tier, rate",
    [
        (6, "Silver", "0.15"),
        (20, "Silver", "0.15"),
        (21, "Gold", "0.25"),
        (50, "Gold", "0.25"),
        (51, "Platinum", "0.35"),
        (100, "Platinum", "0.35"),
        (101, "Diamond", "0.45"),
        (5000, "Diamond", "0.45"),
    ],
)
def test_tier_boundaries(units, tier, rate):
    selected = select_tier(units)
    assert selected.name == tier
    assert selected.discount_rate == Decimal(rate)


def test_below_every_minimum_falls_back_to_lowest_tier():
    assert select_tier(0).name == "Silver"
    assert select_tier(5).name == "Silver"


def test_discount_rate_never_decreases_with_more_units():
    rates = [select_tier(n).discount_rate for n in range(0, 250)]
    assert all(a <= b for a, b in zip(rates, rates[1:]))


def test_empty_tier_table_is_rejected():
    with pytest.raises(ValidationError):
        select_tier(10, ())


def test_quote_gold_tier_on_hundred_pounds():
    q = quote(Decimal("100.00"), 21)
    assert q.tier.name == "Gold"
    assert q.discount == Decimal("25.00")
    assert q.total == Decimal("75.00")


def test_quote_rounds_half_up_to_pence():
    q = quote(Decimal("10.10"), 6)  # 15% of 10.10 = 1.515
    assert q.discount == Decimal("1.52")
    assert q.total == Decimal("8.58")


def test_retail_invoice_has_no_tier_discount():
    items = [LineItem.create("Grooming", 30, "35")]
    retail = quote_items(items, wholesale=False)
    wholesale = quote_items(items, wholesale=True, tiers=PRICING_TIERS)

    assert retail.discount == Decimal("0.00")
    assert retail.total == Decimal("1050.00")
    assert wholesale.discount_rate == Decimal("0.25")
    assert wholesale.total == Decimal("787.50")


def test_price_cart_applies_tier_to_unit_prices_and_skips_unknown_products():
    pricing = PricingService()
    priced = pricing.price_cart({"p1": 10, "p3": 11, "zz": 4, "p2": 0})

    assert priced.quote.total_units == 21
    assert priced.quote.tier.name == "Gold"
    assert [line.id for line in priced.lines] == ["p1", "p3"]
    salmon = priced.lines[0]
    assert salmon.unit_price == Decimal("4.5000")
    assert salmon.total == Decimal("45.00")
    # 10 * 6.00 + 11 * 5.00 = 115.00, less 25%
    assert priced.quote.total == Decimal("86.25")


def test_minimum_order_gate():
    pricing = PricingService()
    with pytest.raises(ValidationError, match="Minimum order: 6 units"):
        pricing.check_minimum(5)
    pricing.check_minimum(6)


def test_next_tier_hint():
    pricing = PricingService()
    assert pricing.next_tier(10).name == "Gold"
    assert pricing.next_tier(150) is None


def test_price_cart_lines_add_up_to_the_charged_total():
    priced = PricingService().price_cart({"p2": 7})  # 5.50 less 15% = 4.675

    [lamb] = priced.lines
    assert lamb.unit_price == Decimal("4.68")
    assert lamb.total == lamb.unit_price * lamb.quantity
    assert sum(line.total for line in priced.lines) == priced.quote.total == Decimal("32.76")
    assert priced.quote.subtotal - priced.quote.discount == priced.quote.total
