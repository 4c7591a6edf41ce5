# Overview: Service-layer operations for document numbering.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence
from backoffice.time_utils import utcnow


TRANSACTION_DOCUMENT_TYPE = "TXN"


def next_document_number(
    *,
    document_type: str,
    prefix: str,
    period: str | None = None,
    pad: int = 4,
) -> str:
    """
    Allocate the next document number for a type within a period.

    Runs inside the caller's transaction (no commit), so the number is only
    consumed if the caller commits. The increment is a single UPDATE, which
    serializes concurrent allocators on the sequence row.
    """
    if not document_type:
        raise ValueError("document_type is required")
    period = period or utcnow().strftime("%Y%m%d")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.document_type == document_type,
            DocumentSequence.period == period,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if not result.rowcount:
        try:
            with db.session.begin_nested():
                db.session.add(DocumentSequence(document_type=document_type, period=period, next_number=2))
            return f"{prefix}-{period}-{1:0{pad}d}"
        except IntegrityError:
            # Another allocator created the row first; take the next slot.
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise

    current = (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type, period=period)
        .scalar()
    )
    return f"{prefix}-{period}-{current - 1:0{pad}d}"


def next_transaction_number() -> str:
    """Human-readable number for a new sale, e.g. TXN-20261019-0042."""
    return next_document_number(document_type=TRANSACTION_DOCUMENT_TYPE, prefix="TXN")
