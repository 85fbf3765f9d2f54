"""
Order use cases.

Each use case authorizes the caller, sequences the gateway calls and, on
failure, logs the error with its context and raises ``OrderRequestFailed``
carrying the translated ``OutcomeError``. Nothing else leaves this module.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from order_service.client import Gateways
from order_service.config import Settings
from order_service.errors import (
    BusinessRuleError,
    InsufficientStockError,
    OrderRequestFailed,
    OrderServiceError,
)
from order_service.guard import authorize
from order_service.models import (
    AuthContext,
    CartItem,
    CreateOrderRequest,
    EnrichedOrderItem,
    InventorySnapshot,
    OrderPayload,
    order_id_of,
    order_owner,
)
from order_service.saga import SagaExecution
from order_service.translator import translate, translate_post_commit

logger = logging.getLogger("order_service.orchestrator")

CREATE_ORDER_STEP = "create order record"


class OrderOrchestrator:
    def __init__(self, gateways: Gateways, settings: Settings):
        self.gateways = gateways
        self.settings = settings

    def _fail(
        self,
        operation: str,
        exc: OrderServiceError,
        default_status: int,
        default_message: str,
        **context: Any,
    ) -> OrderRequestFailed:
        described = ", ".join(f"{k}={v}" for k, v in context.items() if v is not None)
        detail = f" ({exc.detail})" if exc.detail else ""
        logger.error(f"{operation} failed [{described}]: {type(exc).__name__}: {exc.message}{detail}")
        return OrderRequestFailed(translate(exc, default_status, default_message))

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def _enrich(self, cart: List[CartItem], actor: AuthContext) -> List[EnrichedOrderItem]:
        """Fetch each distinct product concurrently, then check stock per product.

        Cart lines for the same product are merged, so the stock check and the
        later decrement both see the total quantity asked for.
        """
        wanted: Dict[str, int] = {}
        for item in cart:
            wanted[item.inventory_id] = wanted.get(item.inventory_id, 0) + item.quantity

        results = await asyncio.gather(
            *(self.gateways.inventory.fetch_snapshot(inventory_id, actor) for inventory_id in wanted),
            return_exceptions=True,
        )

        enriched = []
        for (inventory_id, quantity), result in zip(wanted.items(), results):
            if isinstance(result, BaseException):
                raise result
            snapshot: InventorySnapshot = result
            if snapshot.stock_quantity < quantity:
                raise InsufficientStockError(inventory_id, quantity, snapshot.stock_quantity)
            line = CartItem(inventory_id=inventory_id, quantity=quantity)
            enriched.append(EnrichedOrderItem.from_cart(line, snapshot))
        return enriched

    async def create_order(self, actor: AuthContext, request: CreateOrderRequest) -> Dict[str, Any]:
        gw = self.gateways
        user_id = request.user_id
        try:
            authorize(actor.user_id, user_id)

            cart = await gw.cart.fetch_cart(user_id, actor)
            if not cart:
                raise BusinessRuleError("Cart is empty")

            items = await self._enrich(cart, actor)
            payload = OrderPayload.build(user_id, items, request.shipping_address)
            logger.info(
                f"Creating order for user {user_id}: {len(items)} item(s), "
                f"total {payload.total_price} (correlation_id={actor.correlation_id})"
            )

            saga = self._create_order_saga(payload, actor)
            await saga.run()
            order = saga.result_of(CREATE_ORDER_STEP)
        except OrderServiceError as e:
            raise self._fail(
                "CreateOrder", e, 500, "Error creating order",
                user_id=user_id, correlation_id=actor.correlation_id,
            )

        order_id = order_id_of(order)
        logger.info(f"Order {order_id} created for user {user_id}")
        response = {"message": "Order created successfully", "order": order}

        # Past this point the order stands; failures are reported, not undone.
        if gw.payment is not None:
            try:
                response["payment"] = await gw.payment.process_payment(
                    order_id, payload.total_price, user_id, request.payment_method, actor
                )
            except OrderServiceError as e:
                logger.error(f"Payment failed for order {order_id}: {e.message}")
                raise OrderRequestFailed(
                    translate_post_commit(e, "Order created but payment failed", order_id)
                )

        if gw.shipping is not None and request.shipping_address:
            try:
                response["shipment"] = await gw.shipping.create_shipment(
                    user_id, order_id, request.shipping_address, actor
                )
            except OrderServiceError as e:
                logger.error(f"Shipment creation failed for order {order_id}: {e.message}")
                raise OrderRequestFailed(
                    translate_post_commit(e, "Order created but shipment creation failed", order_id)
                )

        return response

    def _create_order_saga(self, payload: OrderPayload, actor: AuthContext) -> SagaExecution:
        # create -> decrement x N -> clear; the cart is only cleared once stock is taken
        gw = self.gateways
        saga = SagaExecution("CreateOrder", compensate=self.settings.compensate_on_failure)

        async def create():
            return await gw.orders.create_order(payload, actor)

        async def cancel_created():
            order_id = order_id_of(saga.result_of(CREATE_ORDER_STEP) or {})
            if order_id is None:
                logger.error("Cannot cancel created order: order store returned no id")
                return
            await gw.orders.cancel_order(order_id, actor)

        saga.add_step(CREATE_ORDER_STEP, create, cancel_created)

        for item in payload.items:
            saga.add_step(
                f"decrement stock {item.product_id}",
                lambda item=item: gw.stock.decrement_stock(item.product_id, item.quantity, actor),
                lambda item=item: gw.stock.restock(item.product_id, item.quantity, actor),
            )

        saga.add_step("clear cart", lambda: gw.cart.clear_cart(payload.user_id, actor))
        return saga

    # ------------------------------------------------------------------
    # Read / update / cancel
    # ------------------------------------------------------------------

    async def get_order(self, actor: AuthContext, order_id: str) -> Dict[str, Any]:
        try:
            record = await self.gateways.orders.get_order(order_id, actor)
            authorize(actor.user_id, order_owner(record))
        except OrderServiceError as e:
            raise self._fail(
                "GetOrder", e, 404, "Order not found",
                order_id=order_id, user_id=actor.user_id, correlation_id=actor.correlation_id,
            )
        return record

    async def update_order_status(self, actor: AuthContext, order_id: str, status: str) -> Dict[str, Any]:
        try:
            record = await self.gateways.orders.get_order(order_id, actor)
            owner = order_owner(record)
            authorize(actor.user_id, owner)
            updated = await self.gateways.orders.update_status(order_id, status, actor)
        except OrderServiceError as e:
            raise self._fail(
                "UpdateOrderStatus", e, 500, "Error updating order status",
                order_id=order_id, status=status, user_id=actor.user_id,
                correlation_id=actor.correlation_id,
            )

        logger.info(f"Order {order_id} moved to {status}")
        notifications = self.gateways.notifications
        if notifications is not None:
            try:
                await notifications.notify_status_change(owner, order_id, status, actor)
            except OrderServiceError as e:
                logger.error(f"Status notification failed for order {order_id}: {e.message}")
                raise OrderRequestFailed(
                    translate_post_commit(e, "Order status updated but notification failed", order_id)
                )
        return updated

    async def cancel_order(self, actor: AuthContext, order_id: str) -> Dict[str, Any]:
        try:
            if self.settings.cancel_requires_ownership:
                record = await self.gateways.orders.get_order(order_id, actor)
                authorize(actor.user_id, order_owner(record))
            cancelled = await self.gateways.orders.cancel_order(order_id, actor)
        except OrderServiceError as e:
            raise self._fail(
                "CancelOrder", e, 404, "Order not found",
                order_id=order_id, user_id=actor.user_id, correlation_id=actor.correlation_id,
            )
        logger.info(f"Order {order_id} cancelled by user {actor.user_id}")
        return cancelled

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def list_orders_by_user(
        self, actor: AuthContext, user_id: str, status: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        try:
            authorize(actor.user_id, user_id)
            return await self.gateways.orders.list_orders(user_id, status, actor)
        except OrderServiceError as e:
            raise self._fail(
                "ListOrdersByUser", e, 500, "Error fetching orders",
                user_id=user_id, status=status, correlation_id=actor.correlation_id,
            )

    async def list_orders(
        self, actor: AuthContext, user: Optional[str] = None, status: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        return await self.list_orders_by_user(actor, user or actor.user_id, status)
