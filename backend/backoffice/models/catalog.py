from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z


class Product(db.Model):
    """
    Sellable item as stored in the hosted products table.

    Only id, name, unit_price, barcode and is_active matter to checkout;
    the catalog index snapshots those and nothing else.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("unit_price >= 0", name="ck_products_unit_price_non_negative"),
        db.Index("ix_products_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=True, unique=True)
    category = db.Column(db.String(128), nullable=True)

    unit_price = db.Column(db.Numeric(12, 4), nullable=False, default=0)

    # Optional, unique when present
    barcode = db.Column(db.String(64), nullable=True, unique=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "sku": self.sku,
            "category": self.category,
            "unit_price": str(self.unit_price) if self.unit_price is not None else None,
            "barcode": self.barcode,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
