"""In-memory fake of the remote store service for development and testing.

Behaves like the real service closely enough to exercise the core:
- one current cart, merged by product id on add
- orders numbered sequentially
- at most one payment per order (a second one is a ConflictError)
- replayed Idempotency-Keys return the original payment

Failures can be scripted per operation with ``fail_next`` or globally with
``configure``; every call is recorded in ``calls``.
"""

import asyncio
from collections import defaultdict, deque

from storefront.api.port import StoreApi
from storefront.api.schemas import (
    CartItemRequest,
    CreateOrderRequest,
    OrderResponse,
    PaymentRequest,
    PaymentResponse,
    RemoteCart,
    RemoteCartItem,
)
from storefront.errors import ConflictError, RemoteError, ServerError


class FakeStoreApi(StoreApi):
    """Configurable fake remote store."""

    def __init__(self, latency: float = 0.0) -> None:
        self.latency = latency
        self.cart_items: list[RemoteCartItem] = []
        self.orders: dict[str, dict] = {}
        self.payments: dict[str, PaymentResponse] = {}  # keyed by order id
        self.calls: list[dict] = []
        self.should_succeed: bool = True
        self.failure: RemoteError = ServerError("Fake store failure", status_code=500)
        self._scripted: dict[str, deque[RemoteError]] = defaultdict(deque)
        self._idempotent_payments: dict[str, PaymentResponse] = {}
        self._order_seq = 0
        self._payment_seq = 0

    # -------------------------------------------------------------------
    # Scripting
    # -------------------------------------------------------------------
    def configure(self, should_succeed: bool, failure: RemoteError | None = None) -> None:
        """Make every operation succeed, or fail with ``failure``."""
        self.should_succeed = should_succeed
        if failure is not None:
            self.failure = failure

    def fail_next(self, operation: str, error: RemoteError, times: int = 1) -> None:
        """Fail the next ``times`` calls of ``operation`` (method name) with ``error``."""
        for _ in range(times):
            self._scripted[operation].append(error)

    def calls_to(self, operation: str) -> list[dict]:
        return [call for call in self.calls if call["method"] == operation]

    async def _enter(self, operation: str, **payload) -> None:
        self.calls.append({"method": operation, **payload})
        if self.latency:
            await asyncio.sleep(self.latency)
        else:
            await asyncio.sleep(0)
        if self._scripted[operation]:
            raise self._scripted[operation].popleft()
        if not self.should_succeed:
            raise self.failure

    # -------------------------------------------------------------------
    # Cart
    # -------------------------------------------------------------------
    async def fetch_cart(self) -> RemoteCart:
        await self._enter("fetch_cart")
        return RemoteCart(items=[item.model_copy() for item in self.cart_items])

    async def clear_cart(self) -> None:
        await self._enter("clear_cart")
        self.cart_items = []

    async def add_cart_item(self, item: CartItemRequest) -> None:
        await self._enter("add_cart_item", payload=item.to_payload())
        for index, existing in enumerate(self.cart_items):
            if str(existing.product_id) == str(item.product_id):
                self.cart_items[index] = existing.model_copy(update={"quantity": existing.quantity + item.quantity})
                return
        self.cart_items.append(
            RemoteCartItem(
                id=f"ci-{len(self.cart_items) + 1}",
                product_id=item.product_id,
                quantity=item.quantity,
            )
        )

    # -------------------------------------------------------------------
    # Orders & payments
    # -------------------------------------------------------------------
    async def create_order(self, request: CreateOrderRequest) -> OrderResponse:
        await self._enter("create_order", payload=request.to_payload())
        self._order_seq += 1
        order_id = str(self._order_seq)
        response = OrderResponse(
            id=order_id,
            order_number=f"ORD-{self._order_seq:06d}",
            status="PENDING",
            total_amount=request.total_amount,
        )
        self.orders[order_id] = {"request": request, "response": response}
        return response

    async def submit_payment(self, request: PaymentRequest, idempotency_key: str) -> PaymentResponse:
        await self._enter("submit_payment", payload=request.to_payload(), idempotency_key=idempotency_key)
        if idempotency_key in self._idempotent_payments:
            return self._idempotent_payments[idempotency_key]

        order_id = str(request.order_id)
        if order_id not in self.orders:
            raise ServerError(f"Order {order_id} not found", status_code=404)
        if order_id in self.payments:
            raise ConflictError(status_code=409)

        self._payment_seq += 1
        response = PaymentResponse(
            id=str(self._payment_seq),
            payment_number=f"PAY-{self._payment_seq:06d}",
            order_number=self.orders[order_id]["response"].order_number,
            status="COMPLETED",
        )
        self.payments[order_id] = response
        self._idempotent_payments[idempotency_key] = response
        return response
