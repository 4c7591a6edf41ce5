# Overview: Receipt payload assembly and fire-and-forget emission.

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Protocol

from ..errors import ReceiptEmissionFailure
from backoffice.time_utils import to_utc_z
from .pricing_service import PriceBreakdown, to_display


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReceiptLine:
    product_id: int
    name: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal


@dataclass(frozen=True)
class ReceiptPayment:
    method: str
    amount: Decimal


@dataclass(frozen=True)
class ReceiptPayload:
    transaction_id: int
    transaction_number: str
    created_at: object
    customer_name: str | None
    customer_phone: str | None
    pricing: PriceBreakdown
    amount_paid: Decimal
    change_due: Decimal
    currency_symbol: str
    voucher_code: str | None = None
    lines: list[ReceiptLine] = field(default_factory=list)
    payments: list[ReceiptPayment] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Display-ready payload; every amount rounded to 2 places."""
        return {
            "transaction_id": self.transaction_id,
            "transaction_number": self.transaction_number,
            "created_at": to_utc_z(self.created_at) if self.created_at else None,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "currency_symbol": self.currency_symbol,
            "voucher_code": self.voucher_code,
            "lines": [
                {
                    "product_id": line.product_id,
                    "name": line.name,
                    "quantity": line.quantity,
                    "unit_price": str(to_display(line.unit_price)),
                    "subtotal": str(to_display(line.subtotal)),
                }
                for line in self.lines
            ],
            "payments": [
                {"method": p.method, "amount": str(to_display(p.amount))}
                for p in self.payments
            ],
            "subtotal": str(to_display(self.pricing.subtotal)),
            "tax": str(to_display(self.pricing.tax)),
            "discount": str(to_display(self.pricing.discount)),
            "total": str(to_display(self.pricing.total)),
            "amount_paid": str(to_display(self.amount_paid)),
            "change_due": str(to_display(self.change_due)),
        }


class ReceiptEmitter(Protocol):
    def emit(self, payload: ReceiptPayload) -> None:
        ...


class LoggingReceiptEmitter:
    """Hands the receipt to the log stream; printing/rendering happen elsewhere."""

    def __init__(self, log: logging.Logger | None = None):
        self._log = log or logging.getLogger("backoffice.receipts")

    def emit(self, payload: ReceiptPayload) -> None:
        self._log.info("receipt %s", json.dumps(payload.to_dict(), ensure_ascii=False, sort_keys=True))


def build_receipt(
    *,
    transaction,
    entries,
    payments,
    pricing: PriceBreakdown,
    amount_paid: Decimal,
    change_due: Decimal,
    currency_symbol: str,
    voucher_code: str | None = None,
) -> ReceiptPayload:
    return ReceiptPayload(
        transaction_id=transaction.id,
        transaction_number=transaction.transaction_number,
        created_at=transaction.created_at,
        customer_name=transaction.customer_name,
        customer_phone=transaction.customer_phone,
        pricing=pricing,
        amount_paid=amount_paid,
        change_due=change_due,
        currency_symbol=currency_symbol,
        voucher_code=voucher_code,
        lines=[
            ReceiptLine(
                product_id=e.product_id,
                name=e.name,
                quantity=e.quantity,
                unit_price=e.unit_price,
                subtotal=e.line_total,
            )
            for e in entries
        ],
        payments=[ReceiptPayment(method=p.method, amount=p.amount) for p in payments],
    )


def emit_receipt(emitter: ReceiptEmitter | None, payload: ReceiptPayload) -> ReceiptEmissionFailure | None:
    """
    Emit a receipt for a sale that is already committed.

    Failures are returned, not raised: the sale stands regardless.
    """
    if emitter is None:
        return None
    try:
        emitter.emit(payload)
    except Exception as exc:
        logger.warning(
            "Receipt emission failed for transaction %s (%s): %s",
            payload.transaction_id, payload.transaction_number, exc,
        )
        return ReceiptEmissionFailure(
            "Receipt could not be emitted",
            {
                "transaction_id": payload.transaction_id,
                "transaction_number": payload.transaction_number,
                "reason": str(exc),
            },
        )
    return None
