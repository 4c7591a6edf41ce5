# Overview: Ephemeral checkout cart with merge-on-duplicate line entries.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..errors import ValidationError
from .pricing_service import to_decimal


@dataclass
class CartEntry:
    product_id: int
    name: str
    unit_price: Decimal  # snapshot taken when the product was first added
    quantity: int
    barcode: str | None = None

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "unit_price": str(self.unit_price),
            "quantity": self.quantity,
            "line_total": str(self.line_total),
            "barcode": self.barcode,
        }


def _require_positive_int(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{field} must be a positive integer", {"field": field, "value": value})
    return value


class Cart:
    """
    Ordered line entries, at most one per product id.

    Owned by a single checkout session; not safe for concurrent mutation.
    """

    def __init__(self):
        self._entries: dict[int, CartEntry] = {}

    def add_or_increment(self, product, qty: int = 1) -> CartEntry:
        """Increment an existing line, or add one priced from the product now."""
        qty = _require_positive_int(qty, "quantity")
        entry = self._entries.get(product.id)
        if entry:
            entry.quantity += qty
            return entry

        entry = CartEntry(
            product_id=product.id,
            name=product.name,
            unit_price=to_decimal(product.unit_price, "unit_price"),
            quantity=qty,
            barcode=getattr(product, "barcode", None),
        )
        self._entries[product.id] = entry
        return entry

    def change_quantity(self, product_id: int, delta: int) -> CartEntry | None:
        """Adjust by delta; a result of zero or less drops the line."""
        if isinstance(delta, bool) or not isinstance(delta, int):
            raise ValidationError("delta must be an integer", {"value": delta})
        entry = self._entries.get(product_id)
        if entry is None:
            return None
        entry.quantity += delta
        if entry.quantity <= 0:
            del self._entries[product_id]
            return None
        return entry

    def remove(self, product_id: int) -> None:
        self._entries.pop(product_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def get(self, product_id: int) -> CartEntry | None:
        return self._entries.get(product_id)

    @property
    def entries(self) -> list[CartEntry]:
        return list(self._entries.values())

    @property
    def is_empty(self) -> bool:
        return not self._entries

    def item_count(self) -> int:
        return sum(e.quantity for e in self._entries.values())

    def subtotal(self) -> Decimal:
        return sum((e.line_total for e in self._entries.values()), Decimal("0"))

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self.entries)

    def to_dict(self) -> dict:
        return {
            "entries": [e.to_dict() for e in self._entries.values()],
            "item_count": self.item_count(),
            "subtotal": str(self.subtotal()),
        }
