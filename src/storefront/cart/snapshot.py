"""Immutable cart snapshots handed to consumers outside the Cart Store.

A snapshot is a frozen copy of the cart at one moment: later mutations of
the store never reach it, which is what lets checkout work on exactly what
the visitor saw when they proceeded.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal


@dataclass(frozen=True)
class CartLine:
    id: str
    product_id: str
    name: str
    price: float
    quantity: int
    image_url: str | None = None

    @property
    def line_total(self) -> Decimal:
        return Decimal(str(self.price)) * self.quantity

    def to_storage(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "name": self.name,
            "price": self.price,
            "quantity": self.quantity,
            "imageUrl": self.image_url,
        }

    @classmethod
    def from_storage(cls, data) -> "CartLine | None":
        """Parse one stored cart entry; unusable entries → None."""
        if not isinstance(data, dict):
            return None
        product_id = data.get("productId", data.get("product_id"))
        if product_id is None or str(product_id).strip() == "":
            return None
        try:
            price = float(data.get("price", 0))
            quantity = int(data.get("quantity", 1))
        except (TypeError, ValueError):
            return None
        if price < 0 or quantity < 1:
            return None
        return cls(
            id=str(data.get("id") or ""),
            product_id=str(product_id),
            name=str(data.get("name") or ""),
            price=price,
            quantity=quantity,
            image_url=data.get("imageUrl", data.get("image_url")),
        )


@dataclass(frozen=True)
class CartSnapshot:
    items: tuple[CartLine, ...] = ()
    taken_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def subtotal(self) -> Decimal:
        return sum((line.line_total for line in self.items), Decimal("0"))

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.items)

    def find(self, product_id) -> CartLine | None:
        return next((line for line in self.items if line.product_id == str(product_id)), None)

    def to_storage(self) -> list[dict]:
        return [line.to_storage() for line in self.items]
