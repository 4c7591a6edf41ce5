# Overview: Checkout orchestrator; validates, prices, authorizes and persists a sale.

r"""
Checkout Orchestrator

One call to CheckoutOrchestrator.checkout() is one attempt:

    Idle -> Validating -> Pricing -> Authorizing -> Persisting -> Completed
                                                              \-> Failed(kind)

- Validating: cart non-empty, entry prices/quantities, payment methods and
  amounts, at least one payment, customer fields.
- Pricing: subtotal recomputed from the cart entries, any pending voucher
  re-resolved against that subtotal, tax and total derived. Client totals
  are never used.
- Authorizing: current user must exist and hold one of the checkout roles,
  as decided by the injected authorizer.
- Persisting: header, items, payments, voucher usage through the
  CheckoutStore, then one commit.

Nothing is retried automatically. A failed attempt is retried by the user
with a fresh snapshot; if it reuses the idempotency key, steps that already
landed are skipped and a fully completed sale is returned as-is. The stored
header, not the retry, decides which steps the sale needs; a retry that
prices differently from the header under its key is a ConflictError.

Cancellation is honored up to the moment Persisting starts.

Payment policy: tendered amounts are recorded as given. The sum may be
below or above the total; the result reports amount_paid, change_due and
balance_due for the caller to settle. strict_payments=True rejects a sum
below the total instead.
"""

from __future__ import annotations

import logging
import re
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Callable, Iterable

from flask import current_app

from ..errors import (
    AuthorizationError,
    CheckoutCancelled,
    CheckoutError,
    ConflictError,
    PartialCommitFailure,
    PersistenceUnavailable,
    ReceiptEmissionFailure,
    ValidationError,
    VoucherError,
    VoucherExhausted,
)
from backoffice.time_utils import utcnow
from .cart import Cart, CartEntry
from .checkout_store import (
    STEP_HEADER,
    STEP_ITEMS,
    STEP_PAYMENTS,
    STEP_VOUCHER_USAGE,
    CheckoutStore,
    ItemRow,
    PaymentRow,
    PersistedTransaction,
    SqlCheckoutStore,
    StoreUnavailable,
    TransactionHeader,
)
from .concurrency import Deadline
from .pricing_service import ZERO, PriceBreakdown, PricingConfig, compute_totals, to_decimal
from .receipt_service import LoggingReceiptEmitter, ReceiptEmitter, ReceiptPayload, build_receipt, emit_receipt
from .role_service import RoleAuthorizer
from .voucher_service import VoucherResolution, normalize_code, resolve_voucher


logger = logging.getLogger(__name__)


# =============================================================================
# PAYMENT METHODS (CONSTANTS)
# =============================================================================

METHOD_CASH = "cash"
METHOD_CARD = "card"
METHOD_MOBILE_MONEY = "mobile_money"
METHOD_BANK_TRANSFER = "bank_transfer"
METHOD_VOUCHER = "voucher"

VALID_PAYMENT_METHODS = (
    METHOD_CASH,
    METHOD_CARD,
    METHOD_MOBILE_MONEY,
    METHOD_BANK_TRANSFER,
    METHOD_VOUCHER,
)

CUSTOMER_NAME_MAX = 100
CUSTOMER_PHONE_MAX = 20
PHONE_RE = re.compile(r"^[0-9+\-\s()]*$")


class CheckoutState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    PRICING = "pricing"
    AUTHORIZING = "authorizing"
    PERSISTING = "persisting"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class PaymentEntry:
    method: str
    amount: Decimal
    reference: str | None = None


@dataclass
class CheckoutRequest:
    entries: list[CartEntry]
    payments: list[PaymentEntry]
    customer_name: str | None = None
    customer_phone: str | None = None
    voucher_code: str | None = None
    idempotency_key: str = field(default_factory=lambda: uuid.uuid4().hex)


@dataclass
class CheckoutAttempt:
    """State trail of one checkout() call."""
    state: CheckoutState = CheckoutState.IDLE
    history: list[CheckoutState] = field(default_factory=lambda: [CheckoutState.IDLE])
    failure_kind: str | None = None

    def advance(self, state: CheckoutState) -> None:
        logger.debug("checkout %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def fail(self, kind: str) -> None:
        self.failure_kind = kind
        self.advance(CheckoutState.FAILED)


@dataclass
class CheckoutResult:
    transaction_id: int
    transaction_number: str
    pricing: PriceBreakdown
    amount_paid: Decimal
    voucher_code: str | None = None
    receipt: ReceiptPayload | None = None
    receipt_error: ReceiptEmissionFailure | None = None
    replayed: bool = False

    @property
    def change_due(self) -> Decimal:
        return max(ZERO, self.amount_paid - self.pricing.total)

    @property
    def balance_due(self) -> Decimal:
        return max(ZERO, self.pricing.total - self.amount_paid)

    def to_dict(self) -> dict:
        return {
            "transaction_id": self.transaction_id,
            "transaction_number": self.transaction_number,
            "pricing": self.pricing.to_dict(),
            "amount_paid": str(self.amount_paid),
            "change_due": str(self.change_due),
            "balance_due": str(self.balance_due),
            "voucher_code": self.voucher_code,
            "replayed": self.replayed,
            "receipt": self.receipt.to_dict() if self.receipt else None,
            "receipt_error": self.receipt_error.to_dict() if self.receipt_error else None,
        }


# =============================================================================
# VALIDATION
# =============================================================================

def _validate_entries(entries: list[CartEntry]) -> None:
    if not entries:
        raise ValidationError("Cart cannot be empty")

    for entry in entries:
        quantity = entry.quantity
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError(
                "Quantity must be a positive integer",
                {"product_id": entry.product_id, "quantity": quantity},
            )
        price = entry.unit_price
        if not isinstance(price, Decimal) or not price.is_finite() or price <= ZERO:
            raise ValidationError(
                "Price must be positive",
                {"product_id": entry.product_id, "unit_price": price},
            )


def _validate_payments(payments: list[PaymentEntry]) -> None:
    for index, payment in enumerate(payments):
        if payment.method not in VALID_PAYMENT_METHODS:
            raise ValidationError(
                f"Invalid payment method: {payment.method}",
                {"index": index, "method": payment.method, "valid_methods": list(VALID_PAYMENT_METHODS)},
            )
        amount = payment.amount
        if not isinstance(amount, Decimal) or not amount.is_finite() or amount <= ZERO:
            raise ValidationError(
                "Payment amount must be positive",
                {"index": index, "method": payment.method, "amount": amount},
            )

    if not payments:
        raise ValidationError("At least one payment method required")


def _clean_customer(name: str | None, phone: str | None) -> tuple[str | None, str | None]:
    name = (name or "").strip() or None
    phone = (phone or "").strip() or None

    if name and len(name) > CUSTOMER_NAME_MAX:
        raise ValidationError(
            f"Customer name is limited to {CUSTOMER_NAME_MAX} characters",
            {"field": "customer_name"},
        )
    if phone:
        if len(phone) > CUSTOMER_PHONE_MAX:
            raise ValidationError(
                f"Customer phone is limited to {CUSTOMER_PHONE_MAX} characters",
                {"field": "customer_phone"},
            )
        if not PHONE_RE.match(phone):
            raise ValidationError("Invalid phone format", {"field": "customer_phone"})
    return name, phone


# =============================================================================
# ORCHESTRATOR
# =============================================================================

class CheckoutOrchestrator:
    def __init__(
        self,
        *,
        store: CheckoutStore,
        authorize: Callable[[str | None, Iterable[str]], bool],
        current_user: Callable[[], str | None],
        required_roles: Iterable[str],
        receipt_emitter: ReceiptEmitter | None = None,
        voucher_resolver: Callable[..., VoucherResolution] = resolve_voucher,
        clock: Callable[[], datetime] = utcnow,
        strict_payments: bool = False,
        timeout: float | None = None,
    ):
        self.store = store
        self.authorize = authorize
        self.current_user = current_user
        self.required_roles = frozenset(required_roles)
        self.receipt_emitter = receipt_emitter
        self.voucher_resolver = voucher_resolver
        self.clock = clock
        self.strict_payments = strict_payments
        self.timeout = timeout
        self.last_attempt: CheckoutAttempt | None = None

    def checkout(
        self,
        request: CheckoutRequest,
        pricing: PricingConfig,
        *,
        cancel_event: threading.Event | None = None,
    ) -> CheckoutResult:
        attempt = CheckoutAttempt()
        self.last_attempt = attempt
        try:
            attempt.advance(CheckoutState.VALIDATING)
            entries = list(request.entries)
            _validate_entries(entries)
            _validate_payments(request.payments)
            customer_name, customer_phone = _clean_customer(request.customer_name, request.customer_phone)
            self._check_cancel(cancel_event, attempt)

            attempt.advance(CheckoutState.PRICING)
            try:
                breakdown, resolution = self._price(entries, request.voucher_code, pricing)
            except VoucherError:
                # Voucher state is only reported to users allowed to check out.
                self._authorize()
                # A retry of a sale that already redeemed the voucher (possibly
                # its last use) must still replay.
                if not self._already_completed(request.idempotency_key):
                    raise
                breakdown, resolution = self._price(entries, None, pricing)
            breakdown = breakdown.for_storage()
            amount_paid = sum((p.amount for p in request.payments), ZERO)
            if self.strict_payments and amount_paid < breakdown.total:
                raise ValidationError(
                    "Payments do not cover the total",
                    {"total": breakdown.total, "amount_paid": amount_paid},
                )
            self._check_cancel(cancel_event, attempt)

            attempt.advance(CheckoutState.AUTHORIZING)
            user_id = self._authorize()
            self._check_cancel(cancel_event, attempt)

            attempt.advance(CheckoutState.PERSISTING)
            header = TransactionHeader(
                customer_name=customer_name,
                customer_phone=customer_phone,
                subtotal=breakdown.subtotal,
                tax=breakdown.tax,
                discount=breakdown.discount,
                total=breakdown.total,
                created_by=str(user_id),
                voucher_code=resolution.code if resolution else None,
            )
            persisted, replayed = self._persist(request, header, entries, resolution)
        except CheckoutError as exc:
            attempt.fail(exc.kind)
            raise

        attempt.advance(CheckoutState.COMPLETED)
        if replayed:
            # Report what was stored, not what this retry recomputed.
            if persisted.total is not None:
                breakdown = PriceBreakdown(
                    subtotal=persisted.subtotal,
                    tax=persisted.tax,
                    discount=persisted.discount,
                    total=persisted.total,
                )
            if persisted.amount_paid is not None:
                amount_paid = persisted.amount_paid
        result = CheckoutResult(
            transaction_id=persisted.id,
            transaction_number=persisted.transaction_number,
            pricing=breakdown,
            amount_paid=amount_paid,
            voucher_code=persisted.voucher_code if replayed else header.voucher_code,
            replayed=replayed,
        )
        logger.info(
            "Checkout %s completed as %s (total=%s, paid=%s, replayed=%s)",
            request.idempotency_key, persisted.transaction_number, breakdown.total, amount_paid, replayed,
        )

        if not replayed:
            result.receipt = build_receipt(
                transaction=persisted,
                entries=entries,
                payments=request.payments,
                pricing=breakdown,
                amount_paid=amount_paid,
                change_due=result.change_due,
                currency_symbol=pricing.currency_symbol,
                voucher_code=header.voucher_code,
            )
            result.receipt_error = emit_receipt(self.receipt_emitter, result.receipt)
        return result

    def _check_cancel(self, cancel_event: threading.Event | None, attempt: CheckoutAttempt) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise CheckoutCancelled("Checkout cancelled", {"state": attempt.state.value})

    def _price(
        self,
        entries: list[CartEntry],
        voucher_code: str | None,
        pricing: PricingConfig,
    ) -> tuple[PriceBreakdown, VoucherResolution | None]:
        subtotal = sum((e.unit_price * e.quantity for e in entries), ZERO)
        resolution = None
        code = normalize_code(voucher_code)
        if code:
            resolution = self.voucher_resolver(code, subtotal, self.clock())
        discount = resolution.discount if resolution else ZERO
        return compute_totals(subtotal, pricing.tax_rate, discount), resolution

    def _already_completed(self, key: str) -> bool:
        try:
            applied = self.store.applied_steps(key)
            existing = self.store.find_transaction(key) if STEP_HEADER in applied else None
        except StoreUnavailable:
            return False
        if existing is None:
            return False
        required = [STEP_ITEMS, STEP_PAYMENTS]
        if existing.voucher_code:
            required.append(STEP_VOUCHER_USAGE)
        return all(step in applied for step in required)

    def _authorize(self) -> str:
        user_id = self.current_user()
        if not user_id:
            raise AuthorizationError("Not authenticated", authenticated=False)
        if not self.authorize(user_id, self.required_roles):
            raise AuthorizationError(
                "You don't have permission to process transactions.",
                {"user_id": str(user_id), "required_roles": sorted(self.required_roles)},
            )
        return user_id

    def _persist(
        self,
        request: CheckoutRequest,
        header: TransactionHeader,
        entries: list[CartEntry],
        resolution: VoucherResolution | None,
    ) -> tuple[PersistedTransaction, bool]:
        key = request.idempotency_key
        deadline = Deadline(self.timeout)

        try:
            applied = self.store.applied_steps(key)
            existing = self.store.find_transaction(key) if STEP_HEADER in applied else None
        except StoreUnavailable as exc:
            raise PersistenceUnavailable(
                "Transaction store unavailable",
                {"step": exc.step, "reason": exc.reason, "idempotency_key": key},
            ) from exc

        # A stored header decides which steps the sale needs.
        voucher_code = existing.voucher_code if existing else header.voucher_code
        required = [STEP_HEADER, STEP_ITEMS, STEP_PAYMENTS]
        if voucher_code:
            required.append(STEP_VOUCHER_USAGE)

        if existing and all(step in applied for step in required):
            logger.info("Checkout %s already completed as %s; not writing again", key, existing.transaction_number)
            return existing, True
        if existing:
            self._check_resumable(key, existing, header)

        completed: list[str] = [step for step in required if step in applied]
        transaction = existing

        if transaction is None:
            try:
                transaction = self.store.create_transaction(key, header, deadline)
            except StoreUnavailable as exc:
                self.store.abandon(key)
                raise PersistenceUnavailable(
                    "Transaction store unavailable",
                    {"step": exc.step, "reason": exc.reason, "idempotency_key": key},
                ) from exc
            completed.append(STEP_HEADER)

        items = [ItemRow(product_id=e.product_id, quantity=e.quantity, unit_price=e.unit_price) for e in entries]
        payments = [PaymentRow(method=p.method, amount=p.amount, reference=p.reference) for p in request.payments]

        steps = [
            (STEP_ITEMS, lambda: self.store.insert_items(key, transaction.id, items, deadline)),
            (STEP_PAYMENTS, lambda: self.store.insert_payments(key, transaction.id, payments, deadline)),
        ]
        if resolution:
            steps.append((STEP_VOUCHER_USAGE, lambda: self._redeem(key, transaction, resolution, deadline, completed)))

        for step, write in steps:
            if step in applied:
                continue
            try:
                write()
            except StoreUnavailable as exc:
                self._partial_commit(key, transaction, step, completed, exc)
            completed.append(step)

        try:
            self.store.commit(key)
        except StoreUnavailable as exc:
            self._partial_commit(key, transaction, "commit", completed, exc)

        return transaction, False

    def _check_resumable(self, key: str, existing: PersistedTransaction, header: TransactionHeader) -> None:
        """A retry may only finish the sale its key started, never a different one."""
        stored = (existing.voucher_code, existing.subtotal, existing.tax, existing.discount, existing.total)
        retried = (header.voucher_code, header.subtotal, header.tax, header.discount, header.total)
        if stored != retried:
            raise ConflictError(
                "Idempotency key already belongs to a different sale",
                {
                    "idempotency_key": key,
                    "transaction_id": existing.id,
                    "stored_voucher_code": existing.voucher_code,
                    "voucher_code": header.voucher_code,
                    "stored_total": existing.total,
                    "total": header.total,
                },
            )

    def _redeem(
        self,
        key: str,
        transaction: PersistedTransaction,
        resolution: VoucherResolution,
        deadline: Deadline,
        completed: list[str],
    ) -> None:
        if self.store.increment_voucher_usage(key, transaction.id, resolution.code, deadline):
            return
        # Used up by a concurrent sale after it was resolved for this one.
        self.store.abandon(key)
        logger.warning(
            "Voucher %s exhausted at redemption; checkout %s abandoned after %s",
            resolution.code, key, ", ".join(completed),
        )
        raise VoucherExhausted(resolution.code)

    def _partial_commit(
        self,
        key: str,
        transaction: PersistedTransaction,
        failed_step: str,
        completed: list[str],
        exc: StoreUnavailable,
    ) -> None:
        rolled_back = bool(self.store.abandon(key))
        if rolled_back:
            logger.error(
                "Partial commit: checkout %s failed at %s after %s and was rolled back "
                "(transaction_id=%s number=%s not kept); reconcile by idempotency key: %s",
                key, failed_step, ", ".join(completed), transaction.id, transaction.transaction_number, exc.reason,
            )
        else:
            logger.error(
                "Partial commit: checkout %s transaction_id=%s number=%s failed at %s after %s: %s",
                key, transaction.id, transaction.transaction_number, failed_step, ", ".join(completed), exc.reason,
            )
        raise PartialCommitFailure(
            f"Checkout failed while writing {failed_step}",
            transaction_id=transaction.id,
            idempotency_key=key,
            failed_step=failed_step,
            completed_steps=completed,
            rolled_back=rolled_back,
        ) from exc


def build_orchestrator(
    *,
    current_user: Callable[[], str | None],
    store: CheckoutStore | None = None,
    receipt_emitter: ReceiptEmitter | None = None,
) -> CheckoutOrchestrator:
    """Orchestrator wired from the current app's configuration."""
    config = current_app.config
    return CheckoutOrchestrator(
        store=store or SqlCheckoutStore(),
        authorize=RoleAuthorizer(),
        current_user=current_user,
        required_roles=config.get("CHECKOUT_ROLES", ("admin", "manager", "cashier")),
        receipt_emitter=receipt_emitter or config.get("RECEIPT_EMITTER") or LoggingReceiptEmitter(),
        strict_payments=bool(config.get("CHECKOUT_STRICT_PAYMENTS", False)),
        timeout=config.get("PERSISTENCE_TIMEOUT_SECONDS"),
    )


# =============================================================================
# INTERACTIVE SESSION
# =============================================================================

class CheckoutSession:
    """
    Cart plus pending voucher for one cashier at one terminal.

    apply_voucher() replaces any earlier pending voucher; codes never stack.
    clear_cart() keeps the pending voucher, which is re-validated at
    checkout anyway.
    """

    def __init__(self, catalog=None, voucher_resolver: Callable[..., VoucherResolution] = resolve_voucher, clock=utcnow):
        self.catalog = catalog
        self.cart = Cart()
        self.pending_voucher: VoucherResolution | None = None
        self._voucher_resolver = voucher_resolver
        self._clock = clock

    def scan(self, text: str, qty: int = 1) -> CartEntry:
        if self.catalog is None:
            raise ValidationError("No catalog loaded")
        product = self.catalog.lookup(text)
        if product is None:
            raise ValidationError("Product not found", {"query": text})
        return self.cart.add_or_increment(product, qty)

    def apply_voucher(self, code: str) -> VoucherResolution:
        """Resolve against the current subtotal; on failure the old voucher stays."""
        resolution = self._voucher_resolver(normalize_code(code), self.cart.subtotal(), self._clock())
        self.pending_voucher = resolution
        return resolution

    def clear_voucher(self) -> None:
        self.pending_voucher = None

    def clear_cart(self) -> None:
        self.cart.clear()

    def reset(self) -> None:
        self.cart.clear()
        self.pending_voucher = None

    def preview(self, pricing: PricingConfig) -> PriceBreakdown:
        discount = self.pending_voucher.discount if self.pending_voucher else ZERO
        return compute_totals(self.cart.subtotal(), pricing.tax_rate, discount)

    def build_request(
        self,
        payments: list[PaymentEntry],
        *,
        customer_name: str | None = None,
        customer_phone: str | None = None,
        idempotency_key: str | None = None,
    ) -> CheckoutRequest:
        request = CheckoutRequest(
            entries=[CartEntry(**vars(e)) for e in self.cart.entries],
            payments=list(payments),
            customer_name=customer_name,
            customer_phone=customer_phone,
            voucher_code=self.pending_voucher.code if self.pending_voucher else None,
        )
        if idempotency_key:
            request.idempotency_key = idempotency_key
        return request

    def complete(self, orchestrator: CheckoutOrchestrator, request: CheckoutRequest, pricing: PricingConfig, **kwargs) -> CheckoutResult:
        """Run checkout and discard cart and voucher only on success."""
        result = orchestrator.checkout(request, pricing, **kwargs)
        self.reset()
        return result


def parse_payment(data: dict, index: int = 0) -> PaymentEntry:
    if not isinstance(data, dict):
        raise ValidationError("Payment entries must be objects", {"index": index})
    method = str(data.get("method") or "").strip().lower()
    amount = to_decimal(data.get("amount"), f"payments[{index}].amount")
    reference = (data.get("reference") or None)
    return PaymentEntry(method=method, amount=amount, reference=str(reference)[:128] if reference else None)
