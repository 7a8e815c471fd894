"""Storefront composition root.

Wires the storefront core together for one visitor: local storage, the
stored session, the remote store adapter, the Cart Store, the Cart
Synchronizer and the Payment Submitter. It is also the cart lifecycle owner:
a confirmed checkout clears the cart.

Usage:
    from storefront.app import Storefront, bootstrap

    bootstrap()
    shop = Storefront.from_settings()
    shop.cart.add({"id": 1, "name": "Mug", "price": 10.0}, quantity=2)
    checkout = shop.checkout()
"""

from collections.abc import Callable

import structlog

from storefront.api import build_api
from storefront.api.port import StoreApi
from storefront.api.retry import RetryPolicy
from storefront.cart.store import CartStore
from storefront.cart.sync import CartSynchronizer
from storefront.checkout.orchestrator import CheckoutOrchestrator, CheckoutState, CheckoutTransition
from storefront.config import Settings, load_settings
from storefront.domain import storefront
from storefront.identity.session import StoredSession
from storefront.payment.submitter import PaymentSubmitter
from storefront.storage import build_storage
from storefront.storage.port import LocalStorage
from storefront.utils.logging import configure_logging

logger = structlog.get_logger(__name__)

_context_pushed = False


def bootstrap(log_dir: str | None = None, configure_logs: bool = True) -> None:
    """Initialize the storefront domain and activate its context (idempotent)."""
    global _context_pushed
    if _context_pushed:
        return
    if configure_logs:
        configure_logging(log_dir)
    storefront.init()
    storefront.domain_context().push()
    _context_pushed = True


class Storefront:
    def __init__(
        self,
        storage: LocalStorage,
        api: StoreApi,
        retry_policy: RetryPolicy | None = None,
        session: StoredSession | None = None,
    ) -> None:
        self.storage = storage
        self.api = api
        self.retry_policy = retry_policy or RetryPolicy()
        self.session = session or StoredSession(storage)
        self.cart = CartStore(storage)
        self.sync = CartSynchronizer(
            self.cart,
            self.session,
            storage,
            api=api,
            retry_policy=self.retry_policy,
        )
        self.payments = PaymentSubmitter(self.session, api=api, retry_policy=self.retry_policy)
        self.sync.start()

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "Storefront":
        settings = settings or load_settings()
        storage = build_storage(settings.storage_path)
        session = StoredSession(storage)
        api = build_api(settings, token_provider=lambda: session.token)
        logger.info("Storefront configured", api_adapter=settings.api_adapter, storage_path=settings.storage_path)
        return cls(storage, api, retry_policy=RetryPolicy.from_settings(settings), session=session)

    def _clear_cart_on_confirmation(self, event: CheckoutTransition) -> None:
        if event.state is CheckoutState.CONFIRMED:
            logger.info("Clearing cart after confirmed checkout", order_number=event.checkout.order.number)
            self.cart.clear()

    def _orchestrator_kwargs(self) -> dict:
        return {"storage": self.storage, "api": self.api}

    def checkout(self, on_transition: Callable[[CheckoutTransition], None] | None = None) -> CheckoutOrchestrator:
        """Start a checkout session from a fresh snapshot of the cart."""
        checkout = CheckoutOrchestrator.start(self.cart, self.session, self.payments, **self._orchestrator_kwargs())
        checkout.subscribe(self._clear_cart_on_confirmation)
        if on_transition is not None:
            checkout.subscribe(on_transition)
        return checkout

    def resume_checkout(self, order) -> CheckoutOrchestrator:
        """Retry payment for an existing order in a new session."""
        checkout = CheckoutOrchestrator.resume(order, self.session, self.payments, **self._orchestrator_kwargs())
        checkout.subscribe(self._clear_cart_on_confirmation)
        return checkout

    async def aclose(self) -> None:
        self.sync.stop()
        await self.sync.wait_idle()
        await self.api.aclose()
