from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..errors import ValidationError
from ..extensions import db
from ..models import AppSetting
from .pricing_service import PricingConfig, to_decimal


KEY_TAX_RATE = "tax_rate"
KEY_CURRENCY = "currency"

KNOWN_KEYS = {KEY_TAX_RATE, KEY_CURRENCY}


def get_setting(key: str) -> str | None:
    row = db.session.query(AppSetting).filter_by(key=key).first()
    return row.value if row else None


def set_setting(key: str, value: str, user_id: str | None = None) -> AppSetting:
    """Create or replace a global setting after validating known keys."""
    value = _validate(key, value)
    row = db.session.query(AppSetting).filter_by(key=key).first()
    if row is None:
        row = AppSetting(key=key)
        db.session.add(row)
    row.value = value
    row.updated_by = user_id
    db.session.commit()
    return row


def _validate(key: str, value) -> str:
    if value is None:
        raise ValidationError(f"{key} requires a value")
    value = str(value).strip()
    if key == KEY_TAX_RATE:
        rate = to_decimal(value, KEY_TAX_RATE)
        if rate < 0 or rate > 100:
            raise ValidationError("tax_rate must be a percentage between 0 and 100", {"value": value})
    elif key == KEY_CURRENCY:
        if not value.isalpha() or len(value) > 8:
            raise ValidationError("currency must be an alphabetic code such as USD", {"value": value})
        value = value.upper()
    return value


def load_pricing_config() -> PricingConfig:
    """
    Current tax rate and currency.

    Read fresh on every call; callers hold on to the returned config for as
    long as they want those values to stay fixed (one checkout attempt).
    """
    rows = dict(
        db.session.query(AppSetting.key, AppSetting.value)
        .filter(AppSetting.key.in_(KNOWN_KEYS))
        .all()
    )
    tax_percent = rows.get(KEY_TAX_RATE) or current_app.config.get("DEFAULT_TAX_RATE_PERCENT", "0")
    currency = rows.get(KEY_CURRENCY) or current_app.config.get("DEFAULT_CURRENCY", "USD")
    return PricingConfig.from_percent(Decimal(str(tax_percent)), currency)
