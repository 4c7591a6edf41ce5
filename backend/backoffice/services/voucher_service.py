# Overview: Voucher resolution for checkout and voucher administration.

"""
Voucher Service

resolve_voucher() is read-only: it checks eligibility and computes the
discount but never touches uses_count. Redemption (the increment) belongs
to the checkout store and only happens when a sale completes, so pressing
"apply" repeatedly cannot burn uses.

Eligibility, in order:
1. code exists and is active            -> VoucherNotFound
2. not past expires_at                   -> VoucherExpired
3. uses_count below max_uses             -> VoucherExhausted
4. subtotal at least min_purchase        -> MinimumPurchaseNotMet

The discount is not clamped here; pricing floors the total at zero.
"""

from __future__ import annotations

import secrets
import string
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy.exc import IntegrityError

from ..errors import (
    ConflictError,
    MinimumPurchaseNotMet,
    ValidationError,
    VoucherExhausted,
    VoucherExpired,
    VoucherNotFound,
)
from ..extensions import db
from ..models import Voucher
from backoffice.time_utils import parse_iso_datetime, to_naive_utc, utcnow
from .concurrency import lock_for_update, run_with_retry
from .pricing_service import HUNDRED, ZERO, to_decimal


CODE_ALPHABET = string.ascii_uppercase + string.digits
GENERATED_CODE_LENGTH = 8
MAX_CODE_LENGTH = 64


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


@dataclass(frozen=True)
class VoucherResolution:
    code: str
    voucher_id: int
    discount: Decimal
    is_percentage: bool
    value: Decimal
    min_purchase: Decimal

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "voucher_id": self.voucher_id,
            "discount": str(self.discount),
            "is_percentage": self.is_percentage,
            "value": str(self.value),
            "min_purchase": str(self.min_purchase),
        }


def evaluate_voucher(voucher: Voucher | None, code: str, subtotal: Decimal, now: datetime) -> VoucherResolution:
    """Apply the eligibility rules to an already-loaded voucher row."""
    if voucher is None or not voucher.is_active:
        raise VoucherNotFound(code)

    expires_at = to_naive_utc(voucher.expires_at)
    if expires_at is not None and expires_at <= to_naive_utc(now):
        raise VoucherExpired(code, expires_at)

    if voucher.max_uses is not None and (voucher.uses_count or 0) >= voucher.max_uses:
        raise VoucherExhausted(code, voucher.max_uses)

    min_purchase = Decimal(voucher.min_purchase or 0)
    if subtotal < min_purchase:
        raise MinimumPurchaseNotMet(code, required_minimum=min_purchase, subtotal=subtotal)

    value = Decimal(voucher.value)
    if voucher.is_percentage:
        discount = subtotal * value / HUNDRED
    else:
        discount = value

    return VoucherResolution(
        code=code,
        voucher_id=voucher.id,
        discount=discount,
        is_percentage=bool(voucher.is_percentage),
        value=value,
        min_purchase=min_purchase,
    )


def resolve_voucher(code: str, subtotal, now: datetime | None = None) -> VoucherResolution:
    """Look up an active voucher by normalized code and compute its discount."""
    normalized = normalize_code(code)
    if not normalized:
        raise VoucherNotFound(normalized)
    subtotal = to_decimal(subtotal, "subtotal")

    with db.session.no_autoflush:
        voucher = (
            db.session.query(Voucher)
            .filter(Voucher.code == normalized, Voucher.is_active.is_(True))
            .first()
        )
    return evaluate_voucher(voucher, normalized, subtotal, now or utcnow())


def get_voucher_by_code(code: str) -> Voucher | None:
    return db.session.query(Voucher).filter_by(code=normalize_code(code)).first()


# =============================================================================
# ADMINISTRATION
# =============================================================================

def generate_voucher_code(length: int = GENERATED_CODE_LENGTH) -> str:
    """Random upper-case alphanumeric code that is not already taken."""
    while True:
        code = "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))
        if get_voucher_by_code(code) is None:
            return code


def _clean_fields(data: dict, *, creating: bool, current: Voucher | None = None) -> dict:
    fields: dict = {}

    if creating or "code" in data:
        code = normalize_code(data.get("code"))
        if not code:
            raise ValidationError("Voucher code is required", {"field": "code"})
        if len(code) > MAX_CODE_LENGTH:
            raise ValidationError(f"Voucher code is limited to {MAX_CODE_LENGTH} characters", {"field": "code"})
        fields["code"] = code

    if creating or "is_percentage" in data:
        fields["is_percentage"] = bool(data.get("is_percentage", False))

    if creating or "value" in data:
        if data.get("value") in (None, ""):
            raise ValidationError("Discount value must be greater than 0", {"field": "value"})
        value = to_decimal(data.get("value"), "value")
        if value <= ZERO:
            raise ValidationError("Discount value must be greater than 0", {"field": "value"})
        fields["value"] = value

    is_percentage = fields.get("is_percentage", current.is_percentage if current else False)
    value = fields.get("value", current.value if current else None)
    if is_percentage and value is not None and Decimal(value) > HUNDRED:
        raise ValidationError("Percentage discount cannot exceed 100%", {"field": "value"})

    if creating or "min_purchase" in data:
        raw = data.get("min_purchase")
        min_purchase = ZERO if raw in (None, "") else to_decimal(raw, "min_purchase")
        if min_purchase < ZERO:
            raise ValidationError("Minimum purchase cannot be negative", {"field": "min_purchase"})
        fields["min_purchase"] = min_purchase

    if creating or "max_uses" in data:
        raw = data.get("max_uses")
        if raw in (None, ""):
            fields["max_uses"] = None
        else:
            if isinstance(raw, bool):
                raise ValidationError("max_uses must be a positive integer", {"field": "max_uses"})
            try:
                max_uses = int(raw)
            except (TypeError, ValueError):
                raise ValidationError("max_uses must be a positive integer", {"field": "max_uses"})
            if max_uses <= 0 or str(raw).strip() != str(max_uses):
                raise ValidationError("max_uses must be a positive integer", {"field": "max_uses"})
            fields["max_uses"] = max_uses

    if creating or "expires_at" in data:
        raw = data.get("expires_at")
        if isinstance(raw, datetime):
            fields["expires_at"] = to_naive_utc(raw)
        else:
            try:
                fields["expires_at"] = parse_iso_datetime(raw)
            except (TypeError, ValueError):
                raise ValidationError("expires_at must be an ISO-8601 datetime", {"field": "expires_at"})

    if "description" in data:
        fields["description"] = (data.get("description") or "").strip() or None

    return fields


def create_voucher(data: dict, user_id: str | None = None) -> Voucher:
    fields = _clean_fields(data, creating=True)

    if get_voucher_by_code(fields["code"]) is not None:
        raise ConflictError(f"Voucher code {fields['code']} already exists", {"code": fields["code"]})

    voucher = Voucher(uses_count=0, is_active=True, created_by=user_id, **fields)
    db.session.add(voucher)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Voucher code {fields['code']} already exists", {"code": fields["code"]})
    return voucher


def update_voucher(voucher_id: int, data: dict) -> Voucher | None:
    """Edit voucher terms. uses_count is not editable here."""
    def _op():
        voucher = lock_for_update(db.session.query(Voucher).filter_by(id=voucher_id)).first()
        if not voucher:
            return None

        fields = _clean_fields(data, creating=False, current=voucher)
        new_code = fields.get("code")
        if new_code and new_code != voucher.code and get_voucher_by_code(new_code) is not None:
            raise ConflictError(f"Voucher code {new_code} already exists", {"code": new_code})

        for key, value in fields.items():
            setattr(voucher, key, value)
        db.session.commit()
        return voucher

    try:
        return run_with_retry(_op)
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Voucher code already exists", {"code": data.get("code")})


def set_voucher_active(voucher_id: int, is_active: bool) -> Voucher | None:
    def _op():
        voucher = lock_for_update(db.session.query(Voucher).filter_by(id=voucher_id)).first()
        if not voucher:
            return None
        voucher.is_active = bool(is_active)
        db.session.commit()
        return voucher

    return run_with_retry(_op)
