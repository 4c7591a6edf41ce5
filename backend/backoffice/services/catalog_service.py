# Overview: In-memory catalog of active products for the checkout screen.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError

from ..errors import PersistenceUnavailable
from ..extensions import db
from ..models import Product
from backoffice.time_utils import utcnow
from .concurrency import Deadline, DeadlineExceeded, statement_timeout


@dataclass(frozen=True)
class ProductSnapshot:
    """Immutable copy of the fields checkout needs from a product row."""
    id: int
    name: str
    unit_price: Decimal
    barcode: str | None = None

    @classmethod
    def from_model(cls, product: Product) -> "ProductSnapshot":
        return cls(
            id=product.id,
            name=product.name,
            unit_price=Decimal(product.unit_price),
            barcode=product.barcode or None,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "unit_price": str(self.unit_price),
            "barcode": self.barcode,
        }


class ProductStore(Protocol):
    def list_active_products(self, timeout: float | None = None) -> list[ProductSnapshot]:
        ...


class SqlProductStore:
    """Reads active products from the products table."""

    def list_active_products(self, timeout: float | None = None) -> list[ProductSnapshot]:
        deadline = Deadline(timeout)
        try:
            with statement_timeout(deadline.remaining()):
                rows = (
                    db.session.query(Product)
                    .filter(Product.is_active.is_(True))
                    .order_by(Product.name, Product.id)
                    .all()
                )
            deadline.check("list_active_products")
        except (SQLAlchemyError, DeadlineExceeded) as exc:
            db.session.rollback()
            raise PersistenceUnavailable(
                "Product catalog unavailable",
                {"operation": "list_active_products", "reason": str(exc)},
            ) from exc
        return [ProductSnapshot.from_model(p) for p in rows]


class CatalogIndex:
    """
    Active sellable items, held in memory between refreshes.

    Lookups never hit the store; call refresh() to pick up catalog changes.
    Cart entries copy the price at add time, so a refresh never reprices an
    open cart.
    """

    def __init__(self, store: ProductStore):
        self._store = store
        self._products: list[ProductSnapshot] = []
        self._by_id: dict[int, ProductSnapshot] = {}
        self._by_barcode: dict[str, ProductSnapshot] = {}
        self.refreshed_at = None

    def refresh(self, timeout: float | None = None) -> int:
        products = self._store.list_active_products(timeout=timeout)
        self._products = list(products)
        self._by_id = {p.id: p for p in self._products}
        self._by_barcode = {p.barcode: p for p in self._products if p.barcode}
        self.refreshed_at = utcnow()
        return len(self._products)

    @property
    def products(self) -> list[ProductSnapshot]:
        return list(self._products)

    def __len__(self) -> int:
        return len(self._products)

    def get(self, product_id: int) -> ProductSnapshot | None:
        return self._by_id.get(product_id)

    def find_by_barcode(self, code: str) -> ProductSnapshot | None:
        if not code:
            return None
        return self._by_barcode.get(code.strip())

    def search(self, text: str, limit: int | None = None) -> list[ProductSnapshot]:
        """Case-insensitive substring match on product name, catalog order."""
        needle = (text or "").strip().lower()
        if not needle:
            return []
        matches = [p for p in self._products if needle in p.name.lower()]
        return matches[:limit] if limit else matches

    def lookup(self, text: str) -> ProductSnapshot | None:
        """
        Resolve scanner or typed input to one product.

        Exact barcode wins; otherwise the first product whose name contains
        the text.
        """
        if not text or not text.strip():
            return None
        product = self.find_by_barcode(text)
        if product:
            return product
        matches = self.search(text, limit=1)
        return matches[0] if matches else None
