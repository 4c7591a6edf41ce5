from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z


class Transaction(db.Model):
    """
    Completed point-of-sale transaction (header).

    Created together with its items and payments by the checkout store and
    never edited afterwards. total = subtotal + tax - discount, floored at 0.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.UniqueConstraint("transaction_number", name="uq_transactions_number"),
        db.UniqueConstraint("idempotency_key", name="uq_transactions_idempotency_key"),
        db.Index("ix_transactions_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number (e.g., "TXN-20261019-0042")
    transaction_number = db.Column(db.String(64), nullable=False)

    customer_name = db.Column(db.String(100), nullable=True)
    customer_phone = db.Column(db.String(20), nullable=True)

    subtotal = db.Column(db.Numeric(12, 4), nullable=False)
    tax = db.Column(db.Numeric(12, 4), nullable=False, default=0)
    discount = db.Column(db.Numeric(12, 4), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 4), nullable=False)

    voucher_code = db.Column(db.String(64), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="completed", index=True)

    created_by = db.Column(db.String(64), nullable=False)
    idempotency_key = db.Column(db.String(64), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    items = db.relationship("TransactionItem", backref="transaction", lazy=True, order_by="TransactionItem.id")
    payments = db.relationship("TransactionPayment", backref="transaction", lazy=True, order_by="TransactionPayment.id")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_number": self.transaction_number,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "subtotal": str(self.subtotal),
            "tax": str(self.tax),
            "discount": str(self.discount),
            "total": str(self.total),
            "voucher_code": self.voucher_code,
            "status": self.status,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }


class TransactionItem(db.Model):
    """Line entry of a completed transaction; subtotal = quantity * unit_price."""
    __tablename__ = "transaction_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_transaction_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 4), nullable=False)
    subtotal = db.Column(db.Numeric(12, 4), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price": str(self.unit_price),
            "subtotal": str(self.subtotal),
        }


class TransactionPayment(db.Model):
    """
    One tender applied to a transaction.

    Split payments are several rows for the same transaction. The amounts
    are stored as tendered; they are not forced to sum to the total.
    """
    __tablename__ = "transaction_payments"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_transaction_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)

    # cash, card, mobile_money, bank_transfer, voucher
    payment_method = db.Column(db.String(32), nullable=False)
    amount = db.Column(db.Numeric(12, 4), nullable=False)
    reference = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "payment_method": self.payment_method,
            "amount": str(self.amount),
            "reference": self.reference,
        }


class CheckoutStep(db.Model):
    """
    Marker for one applied persistence step of a checkout attempt.

    Written in the same unit as the rows the step creates, keyed by the
    client-generated idempotency key, so a retried attempt can tell which
    steps already landed.
    """
    __tablename__ = "checkout_steps"
    __table_args__ = (
        db.UniqueConstraint("idempotency_key", "step", name="uq_checkout_steps_key_step"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    idempotency_key = db.Column(db.String(64), nullable=False, index=True)
    step = db.Column(db.String(32), nullable=False)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=True)
    recorded_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
