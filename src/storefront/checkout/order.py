"""Local view of an Order acknowledged by the remote service.

Once the remote service has created an order it is the source of truth; the
client keeps a read-only reference. Status changes never mutate that
reference: ``transition`` returns a new ``Order`` derived from the remote
result and rejects anything outside the order lifecycle.

Lifecycle:
    PENDING → PAYMENT_SUBMITTED → CONFIRMED | FAILED
"""

from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum

from protean.exceptions import InvalidOperationError

from storefront.cart.snapshot import CartLine
from storefront.pricing import PriceBreakdown, ShippingMethod


class OrderStatus(Enum):
    PENDING = "pending"
    PAYMENT_SUBMITTED = "payment-submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PAYMENT_SUBMITTED},
    OrderStatus.PAYMENT_SUBMITTED: {OrderStatus.CONFIRMED, OrderStatus.FAILED},
    OrderStatus.CONFIRMED: set(),  # Terminal
    OrderStatus.FAILED: set(),  # Terminal
}


@dataclass(frozen=True)
class Order:
    id: str
    number: str
    items: tuple[CartLine, ...]
    shipping_address: str
    total: Decimal
    status: OrderStatus = OrderStatus.PENDING
    shipping_method: ShippingMethod = ShippingMethod.STANDARD
    pricing: PriceBreakdown | None = None

    @classmethod
    def from_response(cls, response, items, shipping_address: str, pricing: PriceBreakdown) -> "Order":
        """Build the pending order from the remote ``OrderResponse``."""
        return cls(
            id=str(response.id),
            number=response.order_number,
            items=tuple(items),
            shipping_address=shipping_address,
            total=pricing.total,
            shipping_method=pricing.shipping_method,
            pricing=pricing,
        )

    @property
    def is_paid(self) -> bool:
        return self.status is OrderStatus.CONFIRMED

    def can_transition_to(self, status: OrderStatus) -> bool:
        return status in _VALID_TRANSITIONS[self.status]

    def transition(self, status: OrderStatus) -> "Order":
        if not self.can_transition_to(status):
            raise InvalidOperationError(f"Cannot move order {self.number} from {self.status.value} to {status.value}")
        return replace(self, status=status)
