"""Payment Submitter.

Turns an acknowledged Order and the visitor's payment details into exactly
one payment request per user action:

* details are validated locally before anything touches the network;
* one submission may be in flight per order, and an order paid in this
  session is never charged again (both are ``ConflictError`` without a
  request);
* every user submission gets its own ``Idempotency-Key``, reused across
  the transient-failure retries of that submission so a retried request
  cannot create a second charge.
"""

import asyncio
from collections.abc import Awaitable, Callable
from uuid import uuid4

import structlog

from storefront.api import get_api
from storefront.api.port import StoreApi
from storefront.api.retry import RetryPolicy, call_remote
from storefront.api.schemas import PaymentRequest, wire_id
from storefront.errors import AuthError, ConflictError, ServerError
from storefront.identity.session import Identity
from storefront.payment.methods import Clock, PaymentMethodDetails, utc_today, validate_method
from storefront.payment.payment import Payment, PaymentReceipt, PaymentStatus

logger = structlog.get_logger(__name__)

IN_FLIGHT_MESSAGE = "A payment for this order is already being processed."


def new_idempotency_key() -> str:
    return str(uuid4())


class PaymentSubmitter:
    def __init__(
        self,
        identity: Identity,
        api: StoreApi | None = None,
        retry_policy: RetryPolicy | None = None,
        clock: Clock = utc_today,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        key_factory: Callable[[], str] = new_idempotency_key,
    ) -> None:
        self.identity = identity
        self.api = api or get_api()
        self.retry_policy = retry_policy or RetryPolicy()
        self.clock = clock
        self._sleep = sleep
        self._key_factory = key_factory
        self._in_flight: set[str] = set()
        self._paid: dict[str, PaymentReceipt] = {}

    def is_in_flight(self, order) -> bool:
        return order.id in self._in_flight

    def receipt_for(self, order) -> PaymentReceipt | None:
        return self._paid.get(order.id)

    def validate(self, method: PaymentMethodDetails) -> None:
        """Raise ``ValidationError`` for any problem with the payment details."""
        validate_method(method, user=self.identity.current_user, clock=self.clock)

    def build_request(self, order, method: PaymentMethodDetails) -> PaymentRequest:
        user = self.identity.current_user
        if not self.identity.is_authenticated or user is None:
            raise AuthError("Sign in to complete your payment.")
        return PaymentRequest(
            user_id=wire_id(user.id),
            amount=float(order.total),
            payment_method=method.wire_method,
            order_id=wire_id(order.id),
            order_number=order.number,
            **method.details(user),
        )

    def _guard(self, order) -> None:
        if order.is_paid or order.id in self._paid:
            logger.warning("Payment rejected: order already paid", order_number=order.number)
            raise ConflictError()
        if order.id in self._in_flight:
            logger.warning("Payment rejected: submission already in flight", order_number=order.number)
            raise ConflictError(IN_FLIGHT_MESSAGE)

    async def submit(self, order, method: PaymentMethodDetails) -> Payment:
        """Submit one payment for ``order``. Raises a classified error on failure."""
        self._guard(order)
        self.validate(method)
        request = self.build_request(order, method)

        key = self._key_factory()
        self._in_flight.add(order.id)
        logger.info(
            "Submitting payment",
            order_number=order.number,
            method=method.wire_method,
            amount=float(order.total),
        )
        try:
            response = await call_remote(
                lambda: self.api.submit_payment(request, idempotency_key=key),
                policy=self.retry_policy,
                identity=self.identity,
                sleep=self._sleep,
                description="payment",
            )
        except ConflictError:
            # The remote already holds a payment for this order.
            self._paid.setdefault(order.id, PaymentReceipt(payment_number="", order_number=order.number))
            raise
        finally:
            self._in_flight.discard(order.id)

        payment = Payment.from_response(response, order, method.wire_method)
        if payment.status is PaymentStatus.FAILED:
            logger.warning("Payment declined", order_number=order.number, status=response.status)
            raise ServerError("The payment was declined. Please try another payment method.")

        self._paid[order.id] = payment.receipt
        logger.info("Payment completed", order_number=order.number, payment_number=payment.receipt.payment_number)
        return payment
