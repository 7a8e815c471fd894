"""Remote store port (abstract interface).

Defines the contract every remote adapter implements. Adapters must raise
only the storefront error taxonomy (``storefront.errors``); transport
exceptions never cross this boundary.
"""

from abc import ABC, abstractmethod

from storefront.api.schemas import (
    CartItemRequest,
    CreateOrderRequest,
    OrderResponse,
    PaymentRequest,
    PaymentResponse,
    RemoteCart,
)


class StoreApi(ABC):
    """Abstract remote store interface."""

    @abstractmethod
    async def fetch_cart(self) -> RemoteCart:
        """GET /carts/current."""
        ...

    @abstractmethod
    async def clear_cart(self) -> None:
        """DELETE /carts/current."""
        ...

    @abstractmethod
    async def add_cart_item(self, item: CartItemRequest) -> None:
        """POST /carts/current/items."""
        ...

    @abstractmethod
    async def create_order(self, request: CreateOrderRequest) -> OrderResponse:
        """POST /orders."""
        ...

    @abstractmethod
    async def submit_payment(self, request: PaymentRequest, idempotency_key: str) -> PaymentResponse:
        """POST /payments, carrying an Idempotency-Key header."""
        ...

    async def aclose(self) -> None:  # noqa: B027
        """Release network resources, if any."""
