# Overview: Pricing engine for checkout (subtotal, tax, discount, total).

"""
Pricing Engine

All amounts are Decimal and carried at full precision through tax and
discount. Rounding to 2 places happens only when a value is presented
(to_display / format_money), so 25.00 at 7.5% tax with a 2.50 discount is
24.375 internally and 24.38 on screen. A completed sale is recorded at
the 4-place scale of the money columns (PriceBreakdown.for_storage), with
the total re-derived so the stored row adds up.

Tax rate and currency are never read from module state: the caller passes
a PricingConfig it loaded (see settings_service.load_pricing_config) and
decides when to reload it.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from ..errors import ValidationError


ZERO = Decimal("0")
HUNDRED = Decimal("100")
TWO_PLACES = Decimal("0.01")
# Scale of Numeric(12, 4) money columns
STORAGE_PLACES = Decimal("0.0001")

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "NGN": "₦",
    "JPY": "¥",
    "CNY": "¥",
    "INR": "₹",
    "KES": "KSh",
    "ZAR": "R",
}


def to_decimal(value, field: str = "amount") -> Decimal:
    """Coerce int/str/Decimal input to Decimal. Floats go through str()."""
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number", {"field": field})
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError(f"{field} must be a number", {"field": field, "value": str(value)})
    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number", {"field": field})
    return result


def currency_symbol(code: str | None) -> str:
    if not code:
        return CURRENCY_SYMBOLS["USD"]
    return CURRENCY_SYMBOLS.get(code.upper(), code)


def to_display(amount: Decimal) -> Decimal:
    """Round for presentation only."""
    return Decimal(amount).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def format_money(amount: Decimal, symbol: str = "$") -> str:
    return f"{symbol}{to_display(amount)}"


@dataclass(frozen=True)
class PricingConfig:
    tax_rate: Decimal = ZERO  # fraction, 0.075 = 7.5%
    currency_code: str = "USD"

    @classmethod
    def from_percent(cls, tax_rate_percent, currency_code: str = "USD") -> "PricingConfig":
        rate = to_decimal(tax_rate_percent, "tax_rate") / HUNDRED
        return cls(tax_rate=rate, currency_code=(currency_code or "USD").upper())

    @property
    def currency_symbol(self) -> str:
        return currency_symbol(self.currency_code)

    def to_dict(self) -> dict:
        return {
            "tax_rate": str(self.tax_rate),
            "currency_code": self.currency_code,
            "currency_symbol": self.currency_symbol,
        }


@dataclass(frozen=True)
class PriceBreakdown:
    subtotal: Decimal
    tax: Decimal
    discount: Decimal
    total: Decimal

    def for_storage(self) -> "PriceBreakdown":
        """Components at the stored scale (4 places), total re-derived from them."""
        subtotal = self.subtotal.quantize(STORAGE_PLACES, rounding=ROUND_HALF_UP)
        tax = self.tax.quantize(STORAGE_PLACES, rounding=ROUND_HALF_UP)
        discount = self.discount.quantize(STORAGE_PLACES, rounding=ROUND_HALF_UP)
        total = max(ZERO, subtotal + tax - discount)
        return PriceBreakdown(subtotal=subtotal, tax=tax, discount=discount, total=total)

    def to_dict(self) -> dict:
        return {
            "subtotal": str(self.subtotal),
            "tax": str(self.tax),
            "discount": str(self.discount),
            "total": str(self.total),
            "display": {
                "subtotal": str(to_display(self.subtotal)),
                "tax": str(to_display(self.tax)),
                "discount": str(to_display(self.discount)),
                "total": str(to_display(self.total)),
            },
        }


def compute_totals(subtotal, tax_rate, discount=ZERO) -> PriceBreakdown:
    """
    tax = subtotal * tax_rate
    total = max(0, subtotal + tax - discount)

    A discount larger than subtotal + tax floors the total at zero; the
    recorded discount keeps the resolved amount.
    """
    subtotal = to_decimal(subtotal, "subtotal")
    tax_rate = to_decimal(tax_rate, "tax_rate")
    discount = to_decimal(discount, "discount")

    if subtotal < ZERO:
        raise ValidationError("subtotal cannot be negative", {"subtotal": subtotal})
    if tax_rate < ZERO:
        raise ValidationError("tax_rate cannot be negative", {"tax_rate": tax_rate})
    if discount < ZERO:
        raise ValidationError("discount cannot be negative", {"discount": discount})

    tax = subtotal * tax_rate
    total = max(ZERO, subtotal + tax - discount)
    return PriceBreakdown(subtotal=subtotal, tax=tax, discount=discount, total=total)


def price_cart(cart, config: PricingConfig, discount=ZERO) -> PriceBreakdown:
    return compute_totals(cart.subtotal(), config.tax_rate, discount)
