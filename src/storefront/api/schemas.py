"""Pydantic request/response schemas for the remote store service.

These are external contracts (anti-corruption layer): field names are
snake_case here and camelCase on the wire. Domain code builds them at the
boundary and never passes raw dicts to an adapter.
"""

from typing import Literal

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

_WIRE_CONFIG = {
    "alias_generator": to_camel,
    "populate_by_name": True,
    "extra": "ignore",
}


def wire_id(value) -> int | str:
    """Numeric ids travel as integers, anything else as-is."""
    text = str(value).strip()
    return int(text) if text.isascii() and text.isdigit() else text


class WireModel(BaseModel):
    model_config = _WIRE_CONFIG

    def to_payload(self) -> dict:
        """Serialize with camelCase keys, omitting unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class CartItemRequest(WireModel):
    product_id: int | str
    quantity: int = Field(ge=1, default=1)


class RemoteCartItem(WireModel):
    id: int | str | None = None
    product_id: int | str
    name: str = ""
    price: float = Field(ge=0, default=0.0)
    quantity: int = Field(ge=1, default=1)
    image_url: str | None = None


class RemoteCart(WireModel):
    items: list[RemoteCartItem] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class OrderItemSchema(WireModel):
    product_id: int | str
    quantity: int = Field(ge=1)


class CreateOrderRequest(WireModel):
    user_id: int | str
    shipping_address: str = Field(min_length=1)
    order_items: list[OrderItemSchema] = Field(min_length=1)
    total_amount: float | None = Field(default=None, ge=0)

    model_config = {
        **_WIRE_CONFIG,
        "json_schema_extra": {
            "examples": [
                {
                    "userId": 7,
                    "shippingAddress": "Jane Doe, 1 Main St, Springfield, IL 62701",
                    "orderItems": [{"productId": 1, "quantity": 2}],
                    "totalAmount": 26.59,
                }
            ]
        },
    }


class OrderResponse(WireModel):
    id: int | str
    order_number: str
    status: str | None = None
    total_amount: float | None = None


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------
class CreditCardDetailsSchema(WireModel):
    card_number: str
    card_holder_name: str
    expiry_month: str
    expiry_year: str
    cvv: str


class PaypalDetailsSchema(WireModel):
    email: str
    token: str


class PaymentRequest(WireModel):
    user_id: int | str
    amount: float = Field(ge=0)
    payment_method: Literal["CREDIT_CARD", "PAYPAL"]
    order_id: int | str | None = None
    order_number: str | None = None
    credit_card_details: CreditCardDetailsSchema | None = None
    paypal_details: PaypalDetailsSchema | None = None


class PaymentResponse(WireModel):
    payment_number: str
    order_number: str | None = None
    id: int | str | None = None
    status: str | None = None
