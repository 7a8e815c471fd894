"""Checkout Orchestrator: the shipping → payment → confirmation pipeline.

State Machine:
    SHIPPING → VALIDATING → SUBMITTING_ORDER → ORDER_CREATED
             → SUBMITTING_PAYMENT → CONFIRMED
    VALIDATING → SHIPPING (field or cart errors, nothing submitted)
    VALIDATING | SUBMITTING_ORDER | SUBMITTING_PAYMENT → FAILED

CONFIRMED and FAILED are terminal for a checkout session. A payment that
failed can be retried for the same order in a new session opened with
``resume(order)``; no second order is ever created for it.

The orchestrator works only on the cart snapshot taken when checkout
started, never on the live Cart Store. Local validation problems are put in
``errors`` and remote failures in ``failure``; neither is raised. A second
payment for a confirmed checkout raises ``ConflictError``.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from enum import Enum

import structlog
from protean.exceptions import InvalidOperationError, ValidationError

from storefront.api import get_api
from storefront.api.port import StoreApi
from storefront.api.retry import NO_RETRY, RetryPolicy, call_remote
from storefront.api.schemas import CreateOrderRequest, OrderItemSchema, wire_id
from storefront.cart.snapshot import CartSnapshot
from storefront.cart.store import CartStore
from storefront.checkout.order import Order, OrderStatus
from storefront.checkout.shipping import ShippingForm, ShippingInfo
from storefront.errors import AuthError, ConflictError, RemoteError
from storefront.identity.session import Identity
from storefront.payment.methods import PaymentMethodDetails
from storefront.payment.payment import Payment
from storefront.payment.submitter import PaymentSubmitter
from storefront.pricing import DEFAULT_POLICY, PriceBreakdown, PricingPolicy, ShippingMethod, calculate
from storefront.pricing.calculator import resolve_shipping_method
from storefront.storage.port import SHIPPING_INFO_KEY, LocalStorage, StorageError

logger = structlog.get_logger(__name__)


class CheckoutState(Enum):
    SHIPPING = "shipping"
    VALIDATING = "validating"
    SUBMITTING_ORDER = "submitting_order"
    ORDER_CREATED = "order_created"
    SUBMITTING_PAYMENT = "submitting_payment"
    CONFIRMED = "confirmed"
    FAILED = "failed"


_VALID_TRANSITIONS = {
    CheckoutState.SHIPPING: {CheckoutState.VALIDATING},
    CheckoutState.VALIDATING: {CheckoutState.SHIPPING, CheckoutState.SUBMITTING_ORDER, CheckoutState.FAILED},
    CheckoutState.SUBMITTING_ORDER: {CheckoutState.ORDER_CREATED, CheckoutState.FAILED},
    CheckoutState.ORDER_CREATED: {CheckoutState.SUBMITTING_PAYMENT},
    CheckoutState.SUBMITTING_PAYMENT: {CheckoutState.CONFIRMED, CheckoutState.FAILED},
    CheckoutState.CONFIRMED: set(),  # Terminal
    CheckoutState.FAILED: set(),  # Terminal
}

_ORDER_SUBMITTED_STATES = frozenset(
    {
        CheckoutState.SUBMITTING_ORDER,
        CheckoutState.ORDER_CREATED,
        CheckoutState.SUBMITTING_PAYMENT,
        CheckoutState.CONFIRMED,
    }
)


@dataclass(frozen=True)
class CheckoutFailure:
    """Why a checkout session ended in FAILED."""

    stage: CheckoutState
    error: RemoteError
    order: Order | None = None

    @property
    def user_message(self) -> str:
        return self.error.user_message

    @property
    def retryable(self) -> bool:
        return self.error.retryable

    @property
    def can_retry_payment(self) -> bool:
        """True when a new session can retry payment for the existing order."""
        return (
            self.stage is CheckoutState.SUBMITTING_PAYMENT
            and self.order is not None
            and not isinstance(self.error, ConflictError)
        )


@dataclass(frozen=True)
class CheckoutTransition:
    previous: CheckoutState
    state: CheckoutState
    checkout: "CheckoutOrchestrator"


CheckoutListener = Callable[[CheckoutTransition], None]


class CheckoutOrchestrator:
    def __init__(
        self,
        snapshot: CartSnapshot,
        identity: Identity,
        submitter: PaymentSubmitter,
        storage: LocalStorage | None = None,
        api: StoreApi | None = None,
        order_retry_policy: RetryPolicy = NO_RETRY,
        pricing_policy: PricingPolicy = DEFAULT_POLICY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.snapshot = snapshot
        self.identity = identity
        self.submitter = submitter
        self.storage = storage
        self.api = api or get_api()
        self.order_retry_policy = order_retry_policy
        self.pricing_policy = pricing_policy
        self._sleep = sleep

        self._state = CheckoutState.SHIPPING
        self._listeners: list[CheckoutListener] = []
        self.errors: dict[str, list[str]] = {}
        self.failure: CheckoutFailure | None = None
        self.order: Order | None = None
        self.payment: Payment | None = None
        self.shipping_info: ShippingInfo | None = None
        self.promo_code: str | None = None
        self.shipping_method = ShippingMethod.STANDARD
        self.remember_shipping = False
        self.form = self._prefilled_form()

    # -------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------
    @classmethod
    def start(cls, store: CartStore, identity: Identity, submitter: PaymentSubmitter, **kwargs) -> "CheckoutOrchestrator":
        """Open a checkout session on a snapshot of the cart taken right now."""
        snapshot = store.snapshot()
        logger.info("Checkout started", items=len(snapshot.items), subtotal=float(snapshot.subtotal))
        return cls(snapshot, identity, submitter, **kwargs)

    @classmethod
    def resume(cls, order: Order, identity: Identity, submitter: PaymentSubmitter, **kwargs) -> "CheckoutOrchestrator":
        """Open a session at ORDER_CREATED for an order whose payment has not succeeded."""
        if order.is_paid:
            raise InvalidOperationError(f"Order {order.number} is already paid")

        checkout = cls(CartSnapshot(items=order.items), identity, submitter, **kwargs)
        checkout.order = replace(order, status=OrderStatus.PENDING)
        if order.pricing is not None:
            checkout.promo_code = order.pricing.promo_code
        checkout.shipping_method = order.shipping_method
        checkout._state = CheckoutState.ORDER_CREATED
        logger.info("Checkout resumed", order_number=order.number)
        return checkout

    def _prefilled_form(self) -> ShippingForm:
        if self.storage is not None:
            saved = ShippingForm.from_saved(self.storage.read_json(SHIPPING_INFO_KEY))
            if saved is not None:
                return saved
        return ShippingForm.from_user(self.identity.current_user)

    # -------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------
    @property
    def state(self) -> CheckoutState:
        return self._state

    @property
    def is_finished(self) -> bool:
        return self._state in (CheckoutState.CONFIRMED, CheckoutState.FAILED)

    def subscribe(self, listener: CheckoutListener) -> Callable[[], None]:
        """Register ``listener`` for every state transition; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _transition(self, state: CheckoutState) -> None:
        previous = self._state
        if state not in _VALID_TRANSITIONS[previous]:
            raise InvalidOperationError(f"Cannot move checkout from {previous.value} to {state.value}")
        self._state = state
        logger.debug("Checkout transition", previous=previous.value, state=state.value)

        event = CheckoutTransition(previous=previous, state=state, checkout=self)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Checkout listener failed", state=state.value)

    def _fail(self, stage: CheckoutState, error: RemoteError) -> CheckoutState:
        self.failure = CheckoutFailure(stage=stage, error=error, order=self.order)
        logger.warning(
            "Checkout failed",
            stage=stage.value,
            error_kind=error.kind,
            error=error.message,
            order_number=self.order.number if self.order else None,
        )
        self._transition(CheckoutState.FAILED)
        return self._state

    def _require_state(self, *states: CheckoutState) -> None:
        if self._state not in states:
            raise InvalidOperationError(f"Not allowed while checkout is {self._state.value}")

    # -------------------------------------------------------------------
    # Shipping step
    # -------------------------------------------------------------------
    def update_shipping(self, remember: bool | None = None, **changes) -> bool:
        """Edit the shipping draft. Unknown fields are reported in ``errors``."""
        self._require_state(CheckoutState.SHIPPING)
        if remember is not None:
            self.remember_shipping = remember
        try:
            self.form.update(**changes)
        except ValidationError as exc:
            self.errors = dict(exc.messages)
            return False
        for name in changes:
            self.errors.pop(name, None)
        return True

    def apply_promo(self, code: str | None) -> bool:
        """Apply (or, with an empty code, remove) a promo code."""
        self._require_state(CheckoutState.SHIPPING)
        self.errors.pop("promo_code", None)
        if not code or not code.strip():
            self.promo_code = None
            return True
        try:
            breakdown = calculate(self.snapshot.items, code, self.shipping_method, self.pricing_policy)
        except ValidationError as exc:
            self.errors.update(exc.messages)
            return False
        self.promo_code = breakdown.promo_code
        return True

    def select_shipping_method(self, method: ShippingMethod | str) -> bool:
        self._require_state(CheckoutState.SHIPPING)
        self.errors.pop("shipping_method", None)
        try:
            self.shipping_method = resolve_shipping_method(method)
        except ValidationError as exc:
            self.errors.update(exc.messages)
            return False
        return True

    def quote(self) -> PriceBreakdown:
        """Price the checkout snapshot with the current promo and shipping method."""
        if self.order is not None and self.order.pricing is not None:
            return self.order.pricing
        return calculate(self.snapshot.items, self.promo_code, self.shipping_method, self.pricing_policy)

    # -------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------
    def _cart_errors(self) -> list[str]:
        if self.snapshot.is_empty:
            return ["Your cart is empty"]
        return [
            f"{line.name or 'An item'} cannot be ordered: it has no product id"
            for line in self.snapshot.items
            if not str(line.product_id or "").strip()
        ]

    def _validate(self) -> ShippingInfo | None:
        errors = self.form.errors()
        cart_errors = self._cart_errors()
        if cart_errors:
            errors["cart"] = cart_errors
        if errors:
            self.errors = errors
            return None
        try:
            return self.form.to_shipping_info()
        except ValidationError as exc:
            self.errors = dict(exc.messages)
            return None

    def _remember(self) -> None:
        if self.storage is None:
            return
        try:
            if self.remember_shipping:
                self.storage.write_json(SHIPPING_INFO_KEY, self.form.to_dict())
            else:
                self.storage.remove_item(SHIPPING_INFO_KEY)
        except StorageError as exc:
            logger.error("Could not save shipping details", error=str(exc))

    # -------------------------------------------------------------------
    # Order submission
    # -------------------------------------------------------------------
    async def submit_order(self) -> CheckoutState:
        """Validate the shipping step and create the order (at most once)."""
        if self._state in _ORDER_SUBMITTED_STATES or self.order is not None:
            logger.warning("Order already submitted for this checkout", state=self._state.value)
            return self._state
        if self._state is CheckoutState.FAILED:
            return self._state

        self._transition(CheckoutState.VALIDATING)
        shipping_info = self._validate()
        if shipping_info is None:
            logger.info("Checkout validation failed", fields=sorted(self.errors))
            self._transition(CheckoutState.SHIPPING)
            return self._state

        user = self.identity.current_user
        if not self.identity.is_authenticated or user is None:
            return self._fail(CheckoutState.VALIDATING, AuthError("Sign in to place your order."))

        self.errors = {}
        self.shipping_info = shipping_info
        self._remember()
        pricing = self.quote()
        request = CreateOrderRequest(
            user_id=wire_id(user.id),
            shipping_address=shipping_info.to_address_string(),
            order_items=[
                OrderItemSchema(product_id=wire_id(line.product_id), quantity=line.quantity)
                for line in self.snapshot.items
            ],
            total_amount=float(pricing.total),
        )

        self._transition(CheckoutState.SUBMITTING_ORDER)
        logger.info("Submitting order", items=len(request.order_items), total=float(pricing.total))
        try:
            response = await call_remote(
                lambda: self.api.create_order(request),
                policy=self.order_retry_policy,
                identity=self.identity,
                sleep=self._sleep,
                description="create order",
            )
        except RemoteError as exc:
            return self._fail(CheckoutState.SUBMITTING_ORDER, exc)

        self.order = Order.from_response(response, self.snapshot.items, request.shipping_address, pricing)
        logger.info("Order created", order_id=self.order.id, order_number=self.order.number)
        self._transition(CheckoutState.ORDER_CREATED)
        return self._state

    # -------------------------------------------------------------------
    # Payment submission
    # -------------------------------------------------------------------
    async def submit_payment(self, method: PaymentMethodDetails) -> CheckoutState:
        """Pay for the created order. Form errors keep the session at ORDER_CREATED.

        Paying again after confirmation raises ``ConflictError`` without a request.
        """
        if self._state is CheckoutState.SUBMITTING_PAYMENT:
            logger.warning("Payment already in flight for this checkout", order_number=self.order.number)
            return self._state
        if self._state is CheckoutState.CONFIRMED:
            logger.warning("Payment rejected: checkout already confirmed", order_number=self.order.number)
            raise ConflictError()
        self._require_state(CheckoutState.ORDER_CREATED)

        try:
            self.submitter.validate(method)
        except ValidationError as exc:
            self.errors = dict(exc.messages)
            return self._state

        self.errors = {}
        self.order = self.order.transition(OrderStatus.PAYMENT_SUBMITTED)
        self._transition(CheckoutState.SUBMITTING_PAYMENT)
        try:
            self.payment = await self.submitter.submit(self.order, method)
        except RemoteError as exc:
            self.order = self.order.transition(OrderStatus.FAILED)
            return self._fail(CheckoutState.SUBMITTING_PAYMENT, exc)

        self.order = self.order.transition(OrderStatus.CONFIRMED)
        logger.info(
            "Checkout confirmed",
            order_number=self.order.number,
            payment_number=self.payment.receipt.payment_number,
        )
        self._transition(CheckoutState.CONFIRMED)
        return self._state
