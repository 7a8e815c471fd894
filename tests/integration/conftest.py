"""A FastAPI stand-in for the remote store service, served in-process."""

import httpx
import pytest
from fastapi import APIRouter, Body, Depends, FastAPI, Header, HTTPException, Response

from storefront.api.http_adapter import HttpStoreApi

VALID_TOKEN = "good-token"


class StoreState:
    def __init__(self):
        self.cart: list[dict] = []
        self.orders: dict[int, dict] = {}
        self.payments: dict[int, dict] = {}
        self.idempotency_keys: list[str] = []
        self.fail: dict[str, int] = {}  # route name -> status code to answer with once


def build_store_app(state: StoreState) -> FastAPI:
    router = APIRouter(prefix="/api")

    def require_token(authorization: str | None = Header(default=None)):
        if authorization != f"Bearer {VALID_TOKEN}":
            raise HTTPException(status_code=401, detail="Invalid or missing token")

    def scripted_failure(route: str):
        status = state.fail.pop(route, None)
        if status is not None:
            raise HTTPException(status_code=status, detail=f"Scripted failure for {route}")

    @router.get("/carts/current", dependencies=[Depends(require_token)])
    def get_cart():
        scripted_failure("get_cart")
        return {"items": state.cart}

    @router.delete("/carts/current", status_code=204, dependencies=[Depends(require_token)])
    def clear_cart():
        scripted_failure("clear_cart")
        state.cart = []
        return Response(status_code=204)

    @router.post("/carts/current/items", status_code=201, dependencies=[Depends(require_token)])
    def add_item(payload: dict = Body(...)):
        scripted_failure("add_item")
        for item in state.cart:
            if item["productId"] == payload["productId"]:
                item["quantity"] += payload["quantity"]
                return item
        item = {
            "id": len(state.cart) + 1,
            "productId": payload["productId"],
            "name": f"Product {payload['productId']}",
            "price": 10.0,
            "quantity": payload["quantity"],
        }
        state.cart.append(item)
        return item

    @router.post("/orders", status_code=201, dependencies=[Depends(require_token)])
    def create_order(payload: dict = Body(...)):
        scripted_failure("create_order")
        order_id = len(state.orders) + 1
        order = {
            "id": order_id,
            "orderNumber": f"ORD-{order_id:04d}",
            "status": "PENDING",
            "totalAmount": payload.get("totalAmount"),
            "request": payload,
        }
        state.orders[order_id] = order
        return {key: value for key, value in order.items() if key != "request"}

    @router.post("/payments", status_code=201, dependencies=[Depends(require_token)])
    def create_payment(payload: dict = Body(...), idempotency_key: str | None = Header(default=None)):
        scripted_failure("create_payment")
        state.idempotency_keys.append(idempotency_key)
        order_id = payload.get("orderId")
        if order_id not in state.orders:
            raise HTTPException(status_code=404, detail="Order not found")
        if order_id in state.payments:
            raise HTTPException(status_code=409, detail="Payment already exists for order")
        payment = {
            "id": len(state.payments) + 1,
            "paymentNumber": f"PAY-{len(state.payments) + 1:04d}",
            "orderNumber": state.orders[order_id]["orderNumber"],
            "status": "COMPLETED",
            "request": payload,
        }
        state.payments[order_id] = payment
        return {key: value for key, value in payment.items() if key != "request"}

    app = FastAPI(title="Store service stand-in")
    app.include_router(router)
    return app


@pytest.fixture
def store_state():
    return StoreState()


@pytest.fixture
def store_app(store_state):
    return build_store_app(store_state)


@pytest.fixture
def token():
    return {"value": VALID_TOKEN}


@pytest.fixture
def http_api(store_app, token):
    return HttpStoreApi(
        base_url="http://store.test/api",
        token_provider=lambda: token["value"],
        transport=httpx.ASGITransport(app=store_app),
    )


@pytest.fixture
def valid_token():
    return VALID_TOKEN
