from enum import Enum
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator


def _as_id(value: Any) -> Any:
    # Upstream services hand out both numeric and string ids
    if isinstance(value, (int, str)) and not isinstance(value, bool):
        return str(value)
    return value


Id = Annotated[str, BeforeValidator(_as_id)]


class OrderStatus(str, Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class AuthContext(BaseModel):
    """Identity of the caller for the lifetime of one request."""

    model_config = ConfigDict(frozen=True)

    user_id: Optional[Id] = None
    email: Optional[str] = None
    authorization: Optional[str] = None
    correlation_id: Optional[str] = None


# ---------------------------------------------------------------------------
# Downstream payloads
# ---------------------------------------------------------------------------

class _Wire(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class CartItem(_Wire):
    user_id: Optional[Id] = Field(default=None, alias="userId")
    inventory_id: Id = Field(alias="inventoryId")
    quantity: int


class InventorySnapshot(_Wire):
    inventory_id: Optional[Id] = Field(default=None, alias="inventoryId")
    stock_quantity: int = Field(alias="stockQuantity")
    name: str = ""
    unit_price: float = Field(default=0.0, alias="unitPrice")


class EnrichedOrderItem(_Wire):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    product_id: str = Field(alias="productId")
    quantity: int
    product_name: str = Field(alias="productName")
    price_at_order: float = Field(alias="priceAtOrder")

    @classmethod
    def from_cart(cls, item: CartItem, snapshot: InventorySnapshot) -> "EnrichedOrderItem":
        return cls(
            product_id=item.inventory_id,
            quantity=item.quantity,
            product_name=snapshot.name,
            price_at_order=snapshot.unit_price,
        )


class OrderPayload(_Wire):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    user_id: str = Field(alias="userId")
    items: List[EnrichedOrderItem] = Field(min_length=1)
    total_price: float = Field(alias="totalPrice")
    shipping_address: Optional[Dict[str, Any]] = Field(default=None, alias="shippingAddress")

    @classmethod
    def build(
        cls,
        user_id: str,
        items: List[EnrichedOrderItem],
        shipping_address: Optional[Dict[str, Any]] = None,
    ) -> "OrderPayload":
        total = round(sum(item.price_at_order * item.quantity for item in items), 2)
        return cls(
            user_id=user_id,
            items=items,
            total_price=total,
            shipping_address=shipping_address,
        )

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class DownstreamErrorBody(_Wire):
    """Error body of a downstream service; every field may be absent."""

    message: Optional[str] = None
    error: Optional[str] = None
    errors: Optional[List[Any]] = None

    @classmethod
    def parse(cls, raw: Any) -> "DownstreamErrorBody":
        if not isinstance(raw, dict):
            return cls()
        return cls(
            message=raw.get("message") if isinstance(raw.get("message"), str) else None,
            error=raw.get("error") if isinstance(raw.get("error"), str) else None,
            errors=raw.get("errors") if isinstance(raw.get("errors"), list) else None,
        )


def order_owner(record: Dict[str, Any]) -> Optional[str]:
    for key in ("userId", "user_id", "user"):
        owner = record.get(key)
        if isinstance(owner, dict):
            owner = owner.get("_id") or owner.get("id")
        if owner is not None:
            return str(owner)
    return None


def order_id_of(record: Dict[str, Any]) -> Optional[str]:
    for key in ("_id", "id", "orderId"):
        if record.get(key) is not None:
            return str(record[key])
    return None


# ---------------------------------------------------------------------------
# Inbound requests / outbound responses
# ---------------------------------------------------------------------------

class RequestedItem(BaseModel):
    product_id: Id
    quantity: int = Field(ge=1)


class CreateOrderRequest(BaseModel):
    """Body of ``POST /order/create``.

    ``items`` is validated for compatibility with existing clients but not
    used: the order is always built from the user's cart.
    """

    user_id: Id = Field(min_length=1)
    items: Optional[List[RequestedItem]] = None
    shipping_address: Optional[Dict[str, Any]] = None
    payment_method: Optional[str] = None


class UpdateStatusRequest(BaseModel):
    status: OrderStatus

    @field_validator("status")
    @classmethod
    def not_cancelled(cls, value: OrderStatus) -> OrderStatus:
        if value is OrderStatus.CANCELLED:
            raise ValueError("Use the cancel endpoint to cancel an order")
        return value


class OutcomeError(BaseModel):
    """The only error shape that leaves this service."""

    model_config = ConfigDict(populate_by_name=True)

    http_status: int = Field(exclude=True)
    message: str
    error: Optional[str] = None
    order_id: Optional[str] = Field(default=None, alias="orderId")
    errors: Optional[List[Any]] = None

    def body(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
