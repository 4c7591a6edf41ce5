"""Pricing engine: tax, discount and display rounding."""

from decimal import Decimal

import pytest

from backoffice.errors import ValidationError
from backoffice.services.cart import Cart
from backoffice.services.catalog_service import ProductSnapshot
from backoffice.services.pricing_service import (
    PricingConfig,
    compute_totals,
    currency_symbol,
    format_money,
    price_cart,
    to_decimal,
    to_display,
)


def test_voucher_scenario_keeps_full_precision():
    # 10.00 x 2 + 5.00 x 1, 7.5% tax, 10% discount
    result = compute_totals(Decimal("25.00"), Decimal("0.075"), Decimal("2.50"))
    assert result.subtotal == Decimal("25.00")
    assert result.tax == Decimal("1.875")
    assert result.discount == Decimal("2.50")
    assert result.total == Decimal("24.375")
    assert to_display(result.total) == Decimal("24.38")
    assert result.to_dict()["display"]["total"] == "24.38"


def test_no_discount_scenario():
    result = compute_totals(Decimal("25.00"), Decimal("0.075"))
    assert result.discount == Decimal("0")
    assert result.total == Decimal("26.875")
    assert to_display(result.total) == Decimal("26.88")


def test_storage_scale_keeps_row_consistent():
    # 10.01 at 7.5% is 0.75075 in tax, one place past the money columns
    result = compute_totals(Decimal("10.01"), Decimal("0.075")).for_storage()
    assert result.tax == Decimal("0.7508")
    assert result.total == Decimal("10.7608")
    assert result.subtotal + result.tax - result.discount == result.total

    unchanged = compute_totals(Decimal("25.00"), Decimal("0.075"), Decimal("2.50")).for_storage()
    assert unchanged.total == Decimal("24.375")


def test_total_never_negative():
    result = compute_totals(Decimal("5.00"), Decimal("0.10"), Decimal("50.00"))
    assert result.total == Decimal("0")
    assert result.discount == Decimal("50.00")


def test_zero_tax():
    result = compute_totals("12.40", "0")
    assert result.tax == Decimal("0")
    assert result.total == Decimal("12.40")


@pytest.mark.parametrize(
    "subtotal,rate,discount",
    [("-1", "0", "0"), ("10", "-0.1", "0"), ("10", "0", "-1")],
)
def test_rejects_negative_inputs(subtotal, rate, discount):
    with pytest.raises(ValidationError):
        compute_totals(subtotal, rate, discount)


def test_price_cart_uses_config_rate():
    cart = Cart()
    cart.add_or_increment(ProductSnapshot(id=1, name="Widget", unit_price=Decimal("10.00")), 2)
    cart.add_or_increment(ProductSnapshot(id=2, name="Gadget", unit_price=Decimal("5.00")))
    config = PricingConfig.from_percent("7.5", "NGN")
    result = price_cart(cart, config)
    assert config.tax_rate == Decimal("0.075")
    assert result.total == Decimal("26.875")


class TestDisplay:
    def test_half_up_rounding(self):
        assert to_display(Decimal("1.005")) == Decimal("1.01")
        assert to_display(Decimal("1.004")) == Decimal("1.00")

    def test_format_money(self):
        assert format_money(Decimal("24.375"), "₦") == "₦24.38"

    @pytest.mark.parametrize(
        "code,symbol",
        [("USD", "$"), ("ngn", "₦"), ("KES", "KSh"), ("CHF", "CHF"), (None, "$")],
    )
    def test_currency_symbol(self, code, symbol):
        assert currency_symbol(code) == symbol


class TestToDecimal:
    def test_float_goes_through_str(self):
        assert to_decimal(0.1) == Decimal("0.1")

    @pytest.mark.parametrize("value", [None, True, "abc", "NaN", "Infinity"])
    def test_rejects_non_numbers(self, value):
        with pytest.raises(ValidationError):
            to_decimal(value, "amount")
