from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z


class Voucher(db.Model):
    """
    Discount voucher redeemable at checkout.

    Codes are stored upper-case; lookups normalize input the same way.
    is_percentage=True means value is a percentage (0-100) of the subtotal,
    otherwise value is a fixed monetary amount.

    uses_count only moves through the conditional increment performed when
    a checkout that applied the voucher completes.
    """
    __tablename__ = "vouchers"
    __table_args__ = (
        db.CheckConstraint("uses_count >= 0", name="ck_vouchers_uses_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), nullable=False, unique=True, index=True)
    description = db.Column(db.Text, nullable=True)

    is_percentage = db.Column(db.Boolean, nullable=False, default=False)
    value = db.Column(db.Numeric(12, 4), nullable=False)
    min_purchase = db.Column(db.Numeric(12, 4), nullable=False, default=0)

    max_uses = db.Column(db.Integer, nullable=True)  # NULL = unlimited
    uses_count = db.Column(db.Integer, nullable=False, default=0)

    expires_at = db.Column(db.DateTime, nullable=True)  # UTC-naive
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Voucher code={self.code!r} uses={self.uses_count}/{self.max_uses}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "description": self.description,
            "is_percentage": self.is_percentage,
            "value": str(self.value),
            "min_purchase": str(self.min_purchase),
            "max_uses": self.max_uses,
            "uses_count": self.uses_count,
            "expires_at": to_utc_z(self.expires_at),
            "is_active": self.is_active,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
