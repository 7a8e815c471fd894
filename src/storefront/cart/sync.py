"""Cart Synchronizer: best-effort mirroring of the local cart to the remote cart.

Triggered when a visitor signs in with items in the cart and whenever the
Cart Store changes while someone is signed in. Signing in with an empty cart
leaves the remote cart alone. Scheduling is fire-and-forget: a local mutation never
waits on, or fails because of, the network.

Pushes are serialized per cart. At most one push is in flight; a newer
snapshot waits behind it and replaces any older snapshot still waiting, so
the remote cart always converges on the latest local state and completion
order matches mutation order.

Each push replaces the remote cart wholesale (clear, then one
``POST /carts/current/items`` per line), which makes a retried push safe.
Transient failures are retried with bounded backoff; when a push finally
fails the durable ``cart_sync_failed`` flag is raised, and the next
successful push lowers it.
"""

import asyncio
from collections.abc import Awaitable, Callable

import structlog
from protean.exceptions import ValidationError

from storefront.api import get_api
from storefront.api.port import StoreApi
from storefront.api.retry import RetryPolicy, call_remote
from storefront.api.schemas import CartItemRequest, wire_id
from storefront.cart.snapshot import CartLine, CartSnapshot
from storefront.cart.store import CartChange, CartStore, ChangeOrigin
from storefront.errors import RemoteError, ServerError
from storefront.identity.session import Identity, IdentityEvent
from storefront.storage.port import CART_SYNC_FAILED_KEY, LocalStorage, StorageError

logger = structlog.get_logger(__name__)


class CartSynchronizer:
    def __init__(
        self,
        store: CartStore,
        identity: Identity,
        storage: LocalStorage,
        api: StoreApi | None = None,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.store = store
        self.identity = identity
        self.storage = storage
        self.api = api or get_api()
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        self._pending: CartSnapshot | None = None
        self._worker: asyncio.Task | None = None
        self._unsubscribers: list[Callable[[], None]] = []

    # -------------------------------------------------------------------
    # Wiring
    # -------------------------------------------------------------------
    def start(self) -> None:
        """Listen to cart changes and identity events."""
        if self._unsubscribers:
            return
        self._unsubscribers = [
            self.store.subscribe(self._on_cart_change),
            self.identity.subscribe(self._on_identity_event),
        ]

    def stop(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def _on_cart_change(self, change: CartChange) -> None:
        if change.origin is ChangeOrigin.REMOTE:
            return
        if not self.identity.is_authenticated:
            return
        self.request_sync(change.snapshot)

    def _on_identity_event(self, event: IdentityEvent, identity: Identity) -> None:
        if event is IdentityEvent.SIGNED_IN:
            snapshot = self.store.snapshot()
            if snapshot.is_empty:
                # Nothing local to reconcile; the remote cart stays as it is.
                logger.debug("Signed in with an empty cart; leaving remote cart untouched")
                return
            self.request_sync(snapshot)
        elif event is IdentityEvent.SIGNED_OUT:
            self._pending = None

    # -------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------
    @property
    def in_flight(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def request_sync(self, snapshot: CartSnapshot | None = None) -> None:
        """Queue ``snapshot`` (default: the current cart) for pushing. Never blocks."""
        self._pending = snapshot if snapshot is not None else self.store.snapshot()
        if self.in_flight:
            # The running worker picks the newest pending snapshot up when it finishes.
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; cart sync deferred until flush()")
            return
        self._worker = loop.create_task(self._drain())

    async def _drain(self) -> None:
        while self._pending is not None:
            snapshot, self._pending = self._pending, None
            await self._push(snapshot)

    async def flush(self) -> None:
        """Push anything pending and wait until no push is in flight."""
        while True:
            if self.in_flight:
                await self._worker
                continue
            if self._pending is None:
                return
            self._worker = asyncio.get_running_loop().create_task(self._drain())

    async def wait_idle(self) -> None:
        """Wait for the running push (and anything it picks up) without starting a new one."""
        while self.in_flight:
            await self._worker

    async def sync_now(self) -> bool:
        """Push the current cart immediately (after any in-flight push). Returns success."""
        self.request_sync()
        await self.flush()
        return not self.sync_failed

    # -------------------------------------------------------------------
    # Remote operations
    # -------------------------------------------------------------------
    async def _replace_remote_cart(self, snapshot: CartSnapshot) -> None:
        await self.api.clear_cart()
        for line in snapshot.items:
            await self.api.add_cart_item(
                CartItemRequest(product_id=wire_id(line.product_id), quantity=line.quantity)
            )

    async def _push(self, snapshot: CartSnapshot) -> bool:
        if not self.identity.is_authenticated:
            logger.debug("Skipping cart sync: nobody is signed in")
            return False

        try:
            await call_remote(
                lambda: self._replace_remote_cart(snapshot),
                policy=self.retry_policy,
                identity=self.identity,
                sleep=self._sleep,
                description="cart sync",
            )
        except RemoteError as exc:
            logger.warning("Cart sync failed", error_kind=exc.kind, error=exc.message, items=len(snapshot.items))
            self._set_sync_failed(True)
            return False

        logger.info("Cart synced", items=len(snapshot.items))
        self._set_sync_failed(False)
        return True

    async def refresh(self) -> CartSnapshot | None:
        """Adopt the remote cart as the local cart.

        Display fields the remote omits (name, price, image) are kept from the
        matching local line. Remote items without a product id are
        skipped. Raises a classified ``RemoteError`` on failure, including
        ``ServerError`` when the remote cart cannot be adopted.
        """
        if not self.identity.is_authenticated:
            return None

        remote = await call_remote(
            self.api.fetch_cart,
            policy=self.retry_policy,
            identity=self.identity,
            sleep=self._sleep,
            description="cart refresh",
        )

        local = self.store.snapshot()
        lines = []
        skipped = 0
        for item in remote.items:
            if str(item.product_id).strip() == "":
                skipped += 1
                continue
            existing = local.find(item.product_id)
            lines.append(
                CartLine(
                    id=str(item.id) if item.id is not None else (existing.id if existing else ""),
                    product_id=str(item.product_id),
                    name=item.name or (existing.name if existing else ""),
                    price=item.price or (existing.price if existing else 0.0),
                    quantity=item.quantity,
                    image_url=item.image_url or (existing.image_url if existing else None),
                )
            )
        if skipped:
            logger.warning("Skipped remote cart items without a product id", skipped=skipped)

        try:
            self.store.replace(lines, origin=ChangeOrigin.REMOTE)
        except ValidationError as exc:
            logger.warning("Remote cart rejected", errors=exc.messages)
            raise ServerError("Unexpected cart from store") from exc
        return self.store.snapshot()

    # -------------------------------------------------------------------
    # Sync-failed flag
    # -------------------------------------------------------------------
    @property
    def sync_failed(self) -> bool:
        return self.storage.read_json(CART_SYNC_FAILED_KEY, default=False) is True

    def _set_sync_failed(self, failed: bool) -> None:
        try:
            if failed:
                self.storage.write_json(CART_SYNC_FAILED_KEY, True)
            else:
                self.storage.remove_item(CART_SYNC_FAILED_KEY)
        except StorageError as exc:
            logger.error("Could not record cart sync state", failed=failed, error=str(exc))
