"""Cart Store: the single owner of the visitor's cart.

Every mutating call is fully applied before it returns: the in-memory
aggregate is updated, the whole cart is written to local storage under the
``cart`` key, and subscribers are notified synchronously. Nothing else in the
core reads that storage key.

A failed storage write is logged and swallowed: the in-memory cart remains
authoritative for the session.
"""

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

import structlog
from protean.exceptions import ValidationError

from storefront.cart.cart import Cart
from storefront.cart.snapshot import CartLine, CartSnapshot
from storefront.storage.port import CART_KEY, LocalStorage, StorageError

logger = structlog.get_logger(__name__)


class CartAction(Enum):
    ADD = "add"
    UPDATE = "update"
    REMOVE = "remove"
    CLEAR = "clear"
    REPLACE = "replace"


class ChangeOrigin(Enum):
    LOCAL = "local"
    REMOTE = "remote"


@dataclass(frozen=True)
class Product:
    """The slice of a catalogue product the cart needs."""

    product_id: str
    name: str
    price: float
    image_url: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Product":
        product_id = data.get("productId", data.get("product_id", data.get("id")))
        if product_id is None or str(product_id).strip() == "":
            raise ValidationError({"product_id": ["Product has no id"]})
        return cls(
            product_id=str(product_id),
            name=str(data.get("name") or ""),
            price=data.get("price", 0),
            image_url=data.get("imageUrl", data.get("image_url")),
        )


@dataclass(frozen=True)
class CartChange:
    action: CartAction
    snapshot: CartSnapshot
    product_id: str | None = None
    origin: ChangeOrigin = ChangeOrigin.LOCAL


CartListener = Callable[[CartChange], None]


def _to_line(item) -> CartLine:
    return CartLine(
        id=str(item.id),
        product_id=str(item.product_id),
        name=item.name or "",
        price=item.price,
        quantity=item.quantity,
        image_url=item.image_url,
    )


class CartStore:
    def __init__(self, storage: LocalStorage) -> None:
        self.storage = storage
        self._listeners: list[CartListener] = []
        self._cart = self._load()

    # -------------------------------------------------------------------
    # Loading & persistence
    # -------------------------------------------------------------------
    def _load(self) -> Cart:
        cart = Cart()
        stored = self.storage.read_json(CART_KEY, default=[])
        if not isinstance(stored, list):
            logger.warning("Stored cart is not a list, starting empty", found=type(stored).__name__)
            return cart

        skipped = 0
        for entry in stored:
            line = CartLine.from_storage(entry)
            if line is None:
                skipped += 1
                continue
            cart.add_item(
                product_id=line.product_id,
                name=line.name,
                price=line.price,
                quantity=line.quantity,
                image_url=line.image_url,
                item_id=line.id or None,
            )

        if skipped:
            logger.warning("Skipped malformed cart entries", skipped=skipped)
        logger.debug("Cart loaded", items=len(cart.items))
        return cart

    def _persist(self, snapshot: CartSnapshot) -> None:
        try:
            self.storage.write_json(CART_KEY, snapshot.to_storage())
        except StorageError as exc:
            logger.error("Cart could not be persisted; keeping in-memory copy", error=str(exc))

    def _commit(self, action: CartAction, product_id=None, origin=ChangeOrigin.LOCAL) -> CartSnapshot:
        snapshot = self.snapshot()
        self._persist(snapshot)
        change = CartChange(
            action=action,
            snapshot=snapshot,
            product_id=str(product_id) if product_id is not None else None,
            origin=origin,
        )
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                logger.exception("Cart listener failed", action=action.value)
        return snapshot

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def snapshot(self) -> CartSnapshot:
        """Immutable copy of the cart as it is right now."""
        return CartSnapshot(items=tuple(_to_line(item) for item in self._cart.items))

    @property
    def items(self) -> tuple[CartLine, ...]:
        return self.snapshot().items

    @property
    def total(self) -> Decimal:
        return self.snapshot().subtotal

    @property
    def item_count(self) -> int:
        return self._cart.item_count

    def subscribe(self, listener: CartListener) -> Callable[[], None]:
        """Register ``listener`` for every change; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def add(self, product: Product | Mapping[str, Any], quantity: int = 1) -> CartLine:
        """Add ``quantity`` of ``product``, merging with an existing line."""
        if not isinstance(product, Product):
            product = Product.from_mapping(product)

        item = self._cart.add_item(
            product_id=product.product_id,
            name=product.name,
            price=product.price,
            quantity=quantity,
            image_url=product.image_url,
        )
        logger.info("Added to cart", product_id=product.product_id, quantity=quantity, line_quantity=item.quantity)
        self._commit(CartAction.ADD, product.product_id)
        return _to_line(item)

    def update_quantity(self, product_id, quantity: int) -> None:
        """Set the quantity exactly; zero or less removes the line."""
        if quantity <= 0:
            self.remove(product_id)
            return
        if not self._cart.set_quantity(product_id, quantity):
            logger.debug("Quantity update for product not in cart ignored", product_id=str(product_id))
            return
        self._commit(CartAction.UPDATE, product_id)

    def remove(self, product_id) -> None:
        if not self._cart.remove_item(product_id):
            logger.debug("Remove for product not in cart ignored", product_id=str(product_id))
            return
        logger.info("Removed from cart", product_id=str(product_id))
        self._commit(CartAction.REMOVE, product_id)

    def clear(self) -> None:
        self._cart.remove_all_items()
        logger.info("Cart cleared")
        self._commit(CartAction.CLEAR)

    def replace(self, lines: Iterable[CartLine], origin: ChangeOrigin = ChangeOrigin.REMOTE) -> None:
        """Adopt ``lines`` as the whole cart (e.g. the remote cart after sign-in)."""
        cart = Cart()
        for line in lines:
            cart.add_item(
                product_id=line.product_id,
                name=line.name,
                price=line.price,
                quantity=line.quantity,
                image_url=line.image_url,
                item_id=line.id or None,
            )
        self._cart = cart
        logger.info("Cart replaced", items=len(cart.items), origin=origin.value)
        self._commit(CartAction.REPLACE, origin=origin)
