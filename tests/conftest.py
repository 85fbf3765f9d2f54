import json
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
import pytest
from jose import jwt

from order_service.config import Settings
from order_service.main import create_app

BREWERY_URL = "http://brewery.test"
PAYMENT_URL = "http://payment.test"
SHIPPING_URL = "http://shipping.test"
NOTIFICATION_URL = "http://notification.test"
SECRET = "test-secret"


@dataclass
class Call:
    method: str
    path: str
    params: Dict[str, str]
    json: Any
    headers: httpx.Headers = field(repr=False)


class FakeServices:
    """Routing table standing in for every downstream service."""

    def __init__(self):
        self.routes: Dict[tuple, Any] = {}
        self.calls: List[Call] = []

    def on(
        self,
        method: str,
        path: str,
        status: int = 200,
        json: Any = None,
        raises: Optional[Exception] = None,
        text: Optional[str] = None,
    ):
        self.routes[(method, path)] = (status, json, raises, text)

    def handle(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        self.calls.append(
            Call(request.method, request.url.path, dict(request.url.params), body, request.headers)
        )
        key = (request.method, request.url.path)
        if key not in self.routes:
            raise AssertionError(f"unexpected downstream call {request.method} {request.url.path}")
        status, payload, raises, text = self.routes[key]
        if raises is not None:
            raise raises
        if text is not None:
            return httpx.Response(status, text=text)
        if payload is None:
            return httpx.Response(status)
        return httpx.Response(status, json=payload)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def made(self, method: str, path: str) -> List[Call]:
        return [c for c in self.calls if c.method == method and c.path == path]

    @property
    def trace(self) -> List[str]:
        return [f"{c.method} {c.path}" for c in self.calls]


def make_token(user_id: Optional[str] = "u1", email: str = "u1@example.com", secret: str = SECRET, ttl: int = 3600) -> str:
    claims = {"email": email, "exp": int(time.time()) + ttl}
    if user_id is not None:
        claims["id"] = user_id
    return jwt.encode(claims, secret, algorithm="HS256")


def bearer(user_id: Optional[str] = "u1", **kwargs) -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, **kwargs)}"}


def client_for(app) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")


def build_settings(**overrides) -> Settings:
    values = dict(
        brewery_api_url=BREWERY_URL,
        cart_service_url=BREWERY_URL,
        inventory_service_url=BREWERY_URL,
        order_store_url=BREWERY_URL,
        jwt_secret=SECRET,
        downstream_timeout_ms=1000,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def services():
    return FakeServices()


@pytest.fixture
def settings():
    return build_settings()


@pytest.fixture
def app(settings, services):
    return create_app(settings, transport=services.transport())


@pytest.fixture
def order_record():
    return {
        "_id": "o1",
        "userId": "u1",
        "status": "Pending",
        "items": [{"productId": "101", "quantity": 2, "productName": "Pale Ale", "priceAtOrder": 5.99}],
        "totalPrice": 11.98,
    }


@pytest.fixture
def stocked(services, order_record):
    """One cart line (101 x 2) against stock 5 at 5.99, every write succeeding."""
    services.on("GET", "/api/cart/u1", json=[{"userId": "u1", "inventoryId": 101, "quantity": 2}])
    services.on(
        "GET",
        "/api/inventory/101",
        json={"inventoryId": 101, "stockQuantity": 5, "name": "Pale Ale", "unitPrice": 5.99},
    )
    services.on("POST", "/api/order", status=201, json=order_record)
    services.on("PUT", "/api/inventory/101/stock", json={"inventoryId": 101, "stockQuantity": 3})
    services.on("DELETE", "/api/cart/clear/u1", json={"message": "Cart cleared"})
    services.on("DELETE", "/api/order/o1", json={**order_record, "status": "Cancelled"})
    return services
