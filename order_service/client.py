"""Gateways to the downstream REST services.

Each gateway wraps the calls of one service. Every call opens its own
``httpx.AsyncClient`` with the configured timeout, forwards the caller's
``Authorization`` and ``X-Correlation-Id`` headers, and turns failures into
``TransportError`` (no response) or ``DownstreamError`` (error status).
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from order_service.config import Settings
from order_service.errors import DownstreamError, NotFoundError, TransportError
from order_service.models import (
    AuthContext,
    CartItem,
    DownstreamErrorBody,
    InventorySnapshot,
    OrderPayload,
)

logger = logging.getLogger("order_service.client")


def _error_body(response: httpx.Response) -> DownstreamErrorBody:
    try:
        return DownstreamErrorBody.parse(response.json())
    except ValueError:
        return DownstreamErrorBody()


class ServiceGateway:
    service = "downstream"

    def __init__(
        self,
        base_url: str,
        timeout_ms: int,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_ms = timeout_ms
        self._transport = transport

    def _headers(self, ctx: Optional[AuthContext]) -> Dict[str, str]:
        headers = {}
        if ctx is not None:
            if ctx.authorization:
                headers["Authorization"] = ctx.authorization
            if ctx.correlation_id:
                headers["X-Correlation-Id"] = ctx.correlation_id
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        ctx: Optional[AuthContext] = None,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                # Convert ms to seconds
                timeout_sec = self.timeout_ms / 1000.0
                response = await client.request(
                    method,
                    url,
                    json=json,
                    params=params,
                    headers=self._headers(ctx),
                    timeout=timeout_sec,
                )
        except httpx.TimeoutException:
            logger.error(f"{self.service} service timeout on {method} {url}")
            raise TransportError(self.service, "Request timed out")
        except httpx.RequestError as e:
            logger.error(f"{self.service} service unreachable on {method} {url}: {e}")
            raise TransportError(self.service, str(e) or type(e).__name__)

        if response.status_code >= 400:
            body = _error_body(response)
            logger.warning(
                f"{self.service} service returned {response.status_code} on {method} {url}: "
                f"{body.message or body.error or 'no message'}"
            )
            raise DownstreamError(self.service, response.status_code, body)
        return response

    def _json(self, response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            raise DownstreamError(
                self.service,
                502,
                DownstreamErrorBody(error=f"Invalid JSON from {self.service} service"),
            )

    def _parse(self, model, raw: Any):
        try:
            return model.model_validate(raw)
        except PydanticValidationError as e:
            logger.error(f"Unexpected {self.service} payload: {e}")
            raise DownstreamError(
                self.service,
                502,
                DownstreamErrorBody(error=f"Malformed response from {self.service} service"),
            )


class CartGateway(ServiceGateway):
    service = "cart"

    async def fetch_cart(self, user_id: str, ctx: Optional[AuthContext] = None) -> List[CartItem]:
        try:
            response = await self._request("GET", f"/api/cart/{user_id}", ctx)
        except DownstreamError as e:
            # No cart yet is the same as an empty one
            if e.status_code == 404:
                return []
            raise

        raw = self._json(response)
        if isinstance(raw, dict):
            raw = raw.get("items")
        if not raw:
            return []
        if not isinstance(raw, list):
            raise DownstreamError(
                self.service, 502, DownstreamErrorBody(error="Malformed response from cart service")
            )
        return [self._parse(CartItem, item) for item in raw]

    async def clear_cart(self, user_id: str, ctx: Optional[AuthContext] = None) -> None:
        await self._request("DELETE", f"/api/cart/clear/{user_id}", ctx)


class InventoryGateway(ServiceGateway):
    service = "inventory"

    async def fetch_snapshot(
        self, inventory_id: str, ctx: Optional[AuthContext] = None
    ) -> InventorySnapshot:
        response = await self._request("GET", f"/api/inventory/{inventory_id}", ctx)
        snapshot = self._parse(InventorySnapshot, self._json(response))
        if snapshot.inventory_id is None:
            snapshot = snapshot.model_copy(update={"inventory_id": inventory_id})
        return snapshot


class StockGateway(ServiceGateway):
    """Stock mutations, sent as signed deltas so the inventory service can refuse them."""

    service = "inventory"

    async def decrement_stock(
        self, product_id: str, quantity: int, ctx: Optional[AuthContext] = None
    ) -> None:
        await self._request(
            "PUT", f"/api/inventory/{product_id}/stock", ctx, json={"quantity": -quantity}
        )

    async def restock(self, product_id: str, quantity: int, ctx: Optional[AuthContext] = None) -> None:
        await self._request(
            "PUT", f"/api/inventory/{product_id}/stock", ctx, json={"quantity": quantity}
        )


class OrderStoreGateway(ServiceGateway):
    service = "order store"

    async def create_order(
        self, payload: OrderPayload, ctx: Optional[AuthContext] = None
    ) -> Dict[str, Any]:
        response = await self._request("POST", "/api/order", ctx, json=payload.to_wire())
        return self._json(response) or {}

    async def get_order(self, order_id: str, ctx: Optional[AuthContext] = None) -> Dict[str, Any]:
        try:
            response = await self._request("GET", f"/api/order/{order_id}", ctx)
        except DownstreamError as e:
            if e.status_code == 404:
                raise NotFoundError(e.body.message or "Order not found", e.body.error)
            raise
        record = self._json(response)
        if not isinstance(record, dict):
            raise NotFoundError("Order not found")
        return record

    async def update_status(
        self, order_id: str, status: str, ctx: Optional[AuthContext] = None
    ) -> Dict[str, Any]:
        response = await self._request("PUT", f"/api/order/{order_id}", ctx, json={"status": status})
        return self._json(response) or {}

    async def cancel_order(self, order_id: str, ctx: Optional[AuthContext] = None) -> Dict[str, Any]:
        response = await self._request("DELETE", f"/api/order/{order_id}", ctx)
        return self._json(response) or {}

    async def list_orders(
        self,
        user_id: str,
        status: Optional[str] = None,
        ctx: Optional[AuthContext] = None,
    ) -> List[Dict[str, Any]]:
        params = {"user": user_id}
        if status:
            params["status"] = status
        response = await self._request("GET", "/api/order", ctx, params=params)
        records = self._json(response)
        if isinstance(records, dict):
            records = records.get("orders")
        return records or []


class PaymentGateway(ServiceGateway):
    service = "payment"

    async def process_payment(
        self,
        order_id: str,
        amount: float,
        user_id: str,
        payment_method: Optional[str] = None,
        ctx: Optional[AuthContext] = None,
    ) -> Dict[str, Any]:
        payload = {"orderId": order_id, "amount": amount, "userId": user_id}
        if payment_method:
            payload["paymentMethod"] = payment_method
        response = await self._request("POST", "/payment/process", ctx, json=payload)
        return self._json(response) or {}


class ShippingGateway(ServiceGateway):
    service = "shipping"

    async def create_shipment(
        self,
        user_id: str,
        order_id: str,
        address: Dict[str, Any],
        ctx: Optional[AuthContext] = None,
    ) -> Dict[str, Any]:
        payload = {"userId": user_id, "orderId": order_id, "address": address}
        response = await self._request("POST", "/shipping/create", ctx, json=payload)
        return self._json(response) or {}


class NotificationGateway(ServiceGateway):
    service = "notification"

    async def notify_status_change(
        self, user_id: str, order_id: str, status: str, ctx: Optional[AuthContext] = None
    ) -> None:
        payload = {"userId": user_id, "orderId": order_id, "status": status}
        await self._request("POST", "/notifications/order-status", ctx, json=payload)


@dataclass
class Gateways:
    cart: CartGateway
    inventory: InventoryGateway
    stock: StockGateway
    orders: OrderStoreGateway
    payment: Optional[PaymentGateway] = None
    shipping: Optional[ShippingGateway] = None
    notifications: Optional[NotificationGateway] = None

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> "Gateways":
        timeout_ms = settings.downstream_timeout_ms

        def optional(gateway_cls, url):
            return gateway_cls(url, timeout_ms, transport) if url else None

        return cls(
            cart=CartGateway(settings.cart_service_url, timeout_ms, transport),
            inventory=InventoryGateway(settings.inventory_service_url, timeout_ms, transport),
            stock=StockGateway(settings.inventory_service_url, timeout_ms, transport),
            orders=OrderStoreGateway(settings.order_store_url, timeout_ms, transport),
            payment=optional(PaymentGateway, settings.payment_service_url),
            shipping=optional(ShippingGateway, settings.shipping_service_url),
            notifications=optional(NotificationGateway, settings.notification_service_url),
        )
