# Overview: Checkout error taxonomy shared by services and routes.

"""
Checkout errors

Every failure a checkout attempt can end in is one of these classes. Each
carries a stable ``kind`` plus a ``details`` dict so callers can render a
precise message without parsing strings.

    ValidationError          nothing persisted, user corrects input
    AuthorizationError       nothing persisted
    VoucherError             nothing persisted, user may drop/replace voucher
    PersistenceUnavailable   store unreachable before any write, retryable
    PartialCommitFailure     a write after the header failed, operator reconciles
    ReceiptEmissionFailure   sale stands, only the receipt failed
    CheckoutCancelled        abandoned before persisting
"""

from __future__ import annotations

from decimal import Decimal


class CheckoutError(Exception):
    """Base class for checkout failures."""
    kind = "checkout"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "kind": self.kind,
            "details": _jsonable(self.details),
        }


class ValidationError(CheckoutError, ValueError):
    """400-level input problem (cart, payment or customer shape)."""
    kind = "validation"


class ConflictError(CheckoutError, ValueError):
    """409-level business rule conflict (e.g., duplicate voucher code)."""
    kind = "conflict"


class AuthorizationError(CheckoutError):
    """Acting user is missing or lacks a required role."""
    kind = "authorization"

    def __init__(self, message: str, details: dict | None = None, authenticated: bool = True):
        super().__init__(message, details)
        self.authenticated = authenticated


# -- VOUCHERS --

VOUCHER_NOT_FOUND = "not_found"
VOUCHER_EXPIRED = "expired"
VOUCHER_EXHAUSTED = "exhausted"
VOUCHER_MINIMUM_NOT_MET = "minimum_purchase_not_met"


class VoucherError(CheckoutError):
    """Voucher could not be applied. ``reason`` says why."""
    kind = "voucher"
    reason = "invalid"

    def __init__(self, code: str, message: str | None = None, details: dict | None = None):
        payload = {"code": code, "reason": self.reason}
        payload.update(details or {})
        super().__init__(message or f"Voucher {code} cannot be applied", payload)
        self.code = code


class VoucherNotFound(VoucherError):
    reason = VOUCHER_NOT_FOUND

    def __init__(self, code: str):
        super().__init__(code, "Invalid voucher code")


class VoucherExpired(VoucherError):
    reason = VOUCHER_EXPIRED

    def __init__(self, code: str, expires_at=None):
        super().__init__(code, "Voucher has expired", {"expires_at": expires_at})


class VoucherExhausted(VoucherError):
    reason = VOUCHER_EXHAUSTED

    def __init__(self, code: str, max_uses: int | None = None):
        super().__init__(code, "Voucher has reached maximum uses", {"max_uses": max_uses})


class MinimumPurchaseNotMet(VoucherError):
    reason = VOUCHER_MINIMUM_NOT_MET

    def __init__(self, code: str, required_minimum: Decimal, subtotal: Decimal):
        super().__init__(
            code,
            f"Minimum purchase of {required_minimum} required",
            {"required_minimum": required_minimum, "subtotal": subtotal},
        )
        self.required_minimum = required_minimum


# -- PERSISTENCE --

class PersistenceUnavailable(CheckoutError):
    """External store unreachable or timed out before anything was written."""
    kind = "persistence_unavailable"


class PartialCommitFailure(CheckoutError):
    """
    A persistence step failed after an earlier step succeeded.

    rolled_back=True: the store discarded the partial unit, so transaction_id
    names a row that was never kept. Reconcile by idempotency_key.
    """
    kind = "partial_commit"

    def __init__(
        self,
        message: str,
        *,
        transaction_id: int | None,
        idempotency_key: str,
        failed_step: str,
        completed_steps: list[str],
        rolled_back: bool = False,
    ):
        super().__init__(message, {
            "transaction_id": transaction_id,
            "idempotency_key": idempotency_key,
            "failed_step": failed_step,
            "completed_steps": list(completed_steps),
            "rolled_back": rolled_back,
        })
        self.transaction_id = transaction_id
        self.failed_step = failed_step
        self.rolled_back = rolled_back


class ReceiptEmissionFailure(CheckoutError):
    """Receipt could not be emitted; the transaction itself stands."""
    kind = "receipt_emission"


class CheckoutCancelled(CheckoutError):
    """User abandoned the attempt before persistence began."""
    kind = "cancelled"


def _jsonable(value):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value
