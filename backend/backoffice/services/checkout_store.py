# Overview: Persistence façade for completed checkouts.

"""
Checkout Store

The four writes of a sale, called by the orchestrator in this order:

    header         transactions row (number allocated here)
    items          transaction_items rows
    payments       transaction_payments rows
    voucher_usage  conditional uses_count increment

Every step also records a CheckoutStep marker under the attempt's
idempotency key, in the same unit as the rows it writes. A retry with the
same key can see which steps already landed and skip them instead of
writing twice.

SqlCheckoutStore runs all steps in one database transaction and commits
once in commit(); abandon() rolls the whole unit back and returns True, so
a failed sale leaves no header behind. Readers therefore never see a
header without its items.

Store-level failures (connection loss, statement timeout, constraint
violation, exhausted deadline) surface as StoreUnavailable. Mapping those
to PersistenceUnavailable vs PartialCommitFailure is the orchestrator's
call, since only it knows which steps already succeeded.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, or_, update
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import CheckoutStep, Transaction, TransactionItem, TransactionPayment, Voucher
from .concurrency import Deadline, DeadlineExceeded, statement_timeout
from .document_service import next_transaction_number
from .pricing_service import STORAGE_PLACES


STEP_HEADER = "header"
STEP_ITEMS = "items"
STEP_PAYMENTS = "payments"
STEP_VOUCHER_USAGE = "voucher_usage"

PERSISTENCE_STEPS = (STEP_HEADER, STEP_ITEMS, STEP_PAYMENTS, STEP_VOUCHER_USAGE)

STATUS_COMPLETED = "completed"


class StoreUnavailable(Exception):
    """A store call failed or ran out of time."""

    def __init__(self, step: str, reason: str):
        super().__init__(f"{step}: {reason}")
        self.step = step
        self.reason = reason


@dataclass(frozen=True)
class TransactionHeader:
    customer_name: str | None
    customer_phone: str | None
    subtotal: Decimal
    tax: Decimal
    discount: Decimal
    total: Decimal
    created_by: str
    voucher_code: str | None = None
    status: str = STATUS_COMPLETED


@dataclass(frozen=True)
class ItemRow:
    product_id: int
    quantity: int
    unit_price: Decimal

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class PaymentRow:
    method: str
    amount: Decimal
    reference: str | None = None


@dataclass(frozen=True)
class PersistedTransaction:
    id: int
    transaction_number: str
    created_at: datetime | None
    customer_name: str | None = None
    customer_phone: str | None = None
    subtotal: Decimal | None = None
    tax: Decimal | None = None
    discount: Decimal | None = None
    total: Decimal | None = None
    voucher_code: str | None = None
    amount_paid: Decimal | None = None

    @classmethod
    def from_model(cls, txn: Transaction, amount_paid: Decimal | None = None) -> "PersistedTransaction":
        return cls(
            id=txn.id,
            transaction_number=txn.transaction_number,
            created_at=txn.created_at,
            customer_name=txn.customer_name,
            customer_phone=txn.customer_phone,
            subtotal=txn.subtotal,
            tax=txn.tax,
            discount=txn.discount,
            total=txn.total,
            voucher_code=txn.voucher_code,
            amount_paid=amount_paid,
        )


class CheckoutStore(ABC):
    """Façade the orchestrator writes a sale through."""

    @abstractmethod
    def applied_steps(self, idempotency_key: str) -> dict[str, int | None]:
        """Steps already recorded for this key, mapped to their transaction id."""

    @abstractmethod
    def find_transaction(self, idempotency_key: str) -> PersistedTransaction | None:
        """Header written under this key, if any, with the sum of its stored payments."""

    @abstractmethod
    def create_transaction(self, idempotency_key: str, header: TransactionHeader, deadline: Deadline) -> PersistedTransaction:
        ...

    @abstractmethod
    def insert_items(self, idempotency_key: str, transaction_id: int, items: list[ItemRow], deadline: Deadline) -> None:
        ...

    @abstractmethod
    def insert_payments(self, idempotency_key: str, transaction_id: int, payments: list[PaymentRow], deadline: Deadline) -> None:
        ...

    @abstractmethod
    def increment_voucher_usage(self, idempotency_key: str, transaction_id: int, code: str, deadline: Deadline) -> bool:
        """Atomically bump uses_count if still under max_uses. False if not."""

    @abstractmethod
    def commit(self, idempotency_key: str) -> None:
        ...

    @abstractmethod
    def abandon(self, idempotency_key: str) -> bool:
        """Give up on the attempt. True when the steps written so far were discarded."""


class SqlCheckoutStore(CheckoutStore):
    """CheckoutStore over the SQLAlchemy session; one DB transaction per sale."""

    def applied_steps(self, idempotency_key: str) -> dict[str, int | None]:
        try:
            rows = (
                db.session.query(CheckoutStep.step, CheckoutStep.transaction_id)
                .filter_by(idempotency_key=idempotency_key)
                .all()
            )
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreUnavailable("lookup", str(exc)) from exc
        return {step: txn_id for step, txn_id in rows}

    def find_transaction(self, idempotency_key: str) -> PersistedTransaction | None:
        try:
            txn = db.session.query(Transaction).filter_by(idempotency_key=idempotency_key).first()
            if txn is None:
                return None
            paid = (
                db.session.query(func.coalesce(func.sum(TransactionPayment.amount), 0))
                .filter(TransactionPayment.transaction_id == txn.id)
                .scalar()
            )
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreUnavailable("lookup", str(exc)) from exc
        return PersistedTransaction.from_model(txn, amount_paid=Decimal(str(paid)).quantize(STORAGE_PLACES))

    def _run_step(self, idempotency_key: str, step: str, deadline: Deadline, write):
        try:
            deadline.check(step)
            with statement_timeout(deadline.remaining()):
                result = write()
                transaction_id = result.id if isinstance(result, Transaction) else result
                db.session.add(CheckoutStep(
                    idempotency_key=idempotency_key,
                    step=step,
                    transaction_id=transaction_id,
                ))
                db.session.flush()
            return result
        except DeadlineExceeded as exc:
            raise StoreUnavailable(step, str(exc)) from exc
        except SQLAlchemyError as exc:
            raise StoreUnavailable(step, str(exc)) from exc

    def create_transaction(self, idempotency_key: str, header: TransactionHeader, deadline: Deadline) -> PersistedTransaction:
        def _write():
            txn = Transaction(
                transaction_number=next_transaction_number(),
                customer_name=header.customer_name,
                customer_phone=header.customer_phone,
                subtotal=header.subtotal,
                tax=header.tax,
                discount=header.discount,
                total=header.total,
                voucher_code=header.voucher_code,
                status=header.status,
                created_by=header.created_by,
                idempotency_key=idempotency_key,
            )
            db.session.add(txn)
            db.session.flush()
            return txn

        txn = self._run_step(idempotency_key, STEP_HEADER, deadline, _write)
        return PersistedTransaction.from_model(txn)

    def insert_items(self, idempotency_key: str, transaction_id: int, items: list[ItemRow], deadline: Deadline) -> None:
        def _write():
            db.session.add_all([
                TransactionItem(
                    transaction_id=transaction_id,
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    subtotal=item.subtotal,
                )
                for item in items
            ])
            db.session.flush()
            return transaction_id

        self._run_step(idempotency_key, STEP_ITEMS, deadline, _write)

    def insert_payments(self, idempotency_key: str, transaction_id: int, payments: list[PaymentRow], deadline: Deadline) -> None:
        def _write():
            db.session.add_all([
                TransactionPayment(
                    transaction_id=transaction_id,
                    payment_method=p.method,
                    amount=p.amount,
                    reference=p.reference,
                )
                for p in payments
            ])
            db.session.flush()
            return transaction_id

        self._run_step(idempotency_key, STEP_PAYMENTS, deadline, _write)

    def increment_voucher_usage(self, idempotency_key: str, transaction_id: int, code: str, deadline: Deadline) -> bool:
        def _write():
            stmt = (
                update(Voucher)
                .where(
                    Voucher.code == code,
                    Voucher.is_active.is_(True),
                    or_(Voucher.max_uses.is_(None), Voucher.uses_count < Voucher.max_uses),
                )
                .values(uses_count=Voucher.uses_count + 1)
                .execution_options(synchronize_session=False)
            )
            result = db.session.execute(stmt)
            if result.rowcount != 1:
                raise _UsageRejected()
            return transaction_id

        try:
            self._run_step(idempotency_key, STEP_VOUCHER_USAGE, deadline, _write)
        except _UsageRejected:
            return False
        return True

    def commit(self, idempotency_key: str) -> None:
        try:
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreUnavailable("commit", str(exc)) from exc

    def abandon(self, idempotency_key: str) -> bool:
        db.session.rollback()
        return True


class _UsageRejected(Exception):
    """Conditional voucher update matched no row."""
