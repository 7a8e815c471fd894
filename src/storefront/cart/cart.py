"""Local Cart aggregate: the visitor's cart as held on the client.

Insertion-ordered items, at most one per product. The aggregate is never
persisted through a protean repository: the Cart Store serializes it to local
storage after every mutation and rebuilds it on start-up.
"""

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Float, HasMany, Integer, String

from storefront.domain import storefront


@storefront.entity(part_of="Cart")
class CartItem:
    product_id = String(required=True, max_length=64)
    name = String(max_length=255, default="")
    price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    image_url = String(max_length=1024)


@storefront.aggregate
class Cart:
    items = HasMany(CartItem)

    @invariant.post
    def one_item_per_product(self):
        product_ids = [str(item.product_id) for item in self.items]
        if len(product_ids) != len(set(product_ids)):
            raise ValidationError({"items": ["A product can appear only once in the cart"]})

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def item_for(self, product_id):
        return next((i for i in self.items if str(i.product_id) == str(product_id)), None)

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def add_item(self, product_id, name, price, quantity=1, image_url=None, item_id=None):
        """Add a product (or increase its quantity if already present)."""
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        existing = self.item_for(product_id)
        if existing:
            existing.quantity += quantity
            return existing

        values = {
            "product_id": str(product_id),
            "name": name or "",
            "price": price,
            "quantity": quantity,
            "image_url": image_url,
        }
        if item_id is not None:
            values["id"] = str(item_id)
        item = CartItem(**values)
        self.add_items(item)
        return item

    def set_quantity(self, product_id, quantity):
        """Set the quantity exactly. Zero or less removes the item; unknown ids are ignored."""
        item = self.item_for(product_id)
        if item is None:
            return False
        if quantity <= 0:
            self.remove_items(item)
        else:
            item.quantity = quantity
        return True

    def remove_item(self, product_id):
        """Remove a product. Unknown ids are ignored."""
        item = self.item_for(product_id)
        if item is None:
            return False
        self.remove_items(item)
        return True

    def remove_all_items(self):
        for item in list(self.items):
            self.remove_items(item)
