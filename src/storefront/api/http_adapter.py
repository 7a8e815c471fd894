"""HTTP adapter for the remote store service, built on httpx.

Every response is classified before it leaves this module:

    transport failure / timeout  → TransientNetworkError
    401, 403                     → AuthError
    409                          → ConflictError
    other non-2xx, bad payload   → ServerError
"""

from collections.abc import Callable
from typing import TypeVar

import httpx
import structlog
from pydantic import BaseModel

from storefront.api.port import StoreApi
from storefront.api.schemas import (
    CartItemRequest,
    CreateOrderRequest,
    OrderResponse,
    PaymentRequest,
    PaymentResponse,
    RemoteCart,
)
from storefront.errors import AuthError, ConflictError, ServerError, TransientNetworkError

logger = structlog.get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

ORDER_CONFLICT_MESSAGE = "An order for this checkout already exists. Check your order history."
PAYMENT_CONFLICT_MESSAGE = ConflictError.default_message


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        for key in ("error", "message", "detail"):
            if body.get(key):
                return str(body[key])
    return str(body)[:200]


def _raise_for_status(response: httpx.Response, conflict_message: str) -> None:
    status = response.status_code
    if 200 <= status < 300:
        return
    detail = _error_detail(response)
    if status in (401, 403):
        raise AuthError(detail or None, status_code=status)
    if status == 409:
        raise ConflictError(conflict_message, status_code=status)
    raise ServerError(detail or None, status_code=status)


def _parse(model: type[M], response: httpx.Response) -> M:
    try:
        return model.model_validate(response.json())
    except ValueError as exc:
        raise ServerError(f"Unexpected response from store: {exc}", status_code=response.status_code) from exc


class HttpStoreApi(StoreApi):
    def __init__(
        self,
        base_url: str,
        token_provider: Callable[[], str | None] | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token_provider = token_provider
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    def _headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        headers = {"Accept": "application/json", **(extra or {})}
        token = self.token_provider() if self.token_provider else None
        if token:
            headers["Authorization"] = token if token.startswith("Bearer ") else f"Bearer {token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict | None = None,
        headers: dict[str, str] | None = None,
        conflict_message: str = ConflictError.default_message,
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, path, json=json, headers=self._headers(headers))
        except httpx.TransportError as exc:
            logger.warning("Store request failed in transit", method=method, path=path, error=repr(exc))
            raise TransientNetworkError(f"{method} {path} did not complete: {exc}") from exc
        except httpx.HTTPError as exc:
            raise ServerError(f"{method} {path} failed: {exc}") from exc

        logger.debug("Store response", method=method, path=path, status=response.status_code)
        _raise_for_status(response, conflict_message)
        return response

    # -------------------------------------------------------------------
    # Cart
    # -------------------------------------------------------------------
    async def fetch_cart(self) -> RemoteCart:
        response = await self._request("GET", "/carts/current")
        return _parse(RemoteCart, response)

    async def clear_cart(self) -> None:
        await self._request("DELETE", "/carts/current")

    async def add_cart_item(self, item: CartItemRequest) -> None:
        await self._request("POST", "/carts/current/items", json=item.to_payload())

    # -------------------------------------------------------------------
    # Orders & payments
    # -------------------------------------------------------------------
    async def create_order(self, request: CreateOrderRequest) -> OrderResponse:
        response = await self._request(
            "POST",
            "/orders",
            json=request.to_payload(),
            conflict_message=ORDER_CONFLICT_MESSAGE,
        )
        return _parse(OrderResponse, response)

    async def submit_payment(self, request: PaymentRequest, idempotency_key: str) -> PaymentResponse:
        response = await self._request(
            "POST",
            "/payments",
            json=request.to_payload(),
            headers={"Idempotency-Key": idempotency_key},
            conflict_message=PAYMENT_CONFLICT_MESSAGE,
        )
        return _parse(PaymentResponse, response)

    async def aclose(self) -> None:
        await self._client.aclose()
