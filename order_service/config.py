import os
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_BREWERY_API_URL = "http://localhost:5089"
DEFAULT_DOWNSTREAM_TIMEOUT_MS = 5000

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _flag(value: Optional[str], default: bool) -> bool:
    if value is None or value.strip() == "":
        return default
    value = value.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean value: {value!r}")


def _url(value: Optional[str]) -> Optional[str]:
    if value is None or value.strip() == "":
        return None
    return value.strip().rstrip("/")


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, assembled once and handed to every gateway."""

    environment: str = "development"
    brewery_api_url: str = DEFAULT_BREWERY_API_URL
    cart_service_url: str = DEFAULT_BREWERY_API_URL
    inventory_service_url: str = DEFAULT_BREWERY_API_URL
    order_store_url: str = DEFAULT_BREWERY_API_URL
    payment_service_url: Optional[str] = None
    shipping_service_url: Optional[str] = None
    notification_service_url: Optional[str] = None
    jwt_secret: Optional[str] = None
    jwt_algorithm: str = "HS256"
    downstream_timeout_ms: int = DEFAULT_DOWNSTREAM_TIMEOUT_MS
    compensate_on_failure: bool = True
    cancel_requires_ownership: bool = True
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ

        brewery_api_url = _url(env.get("BREWERY_API_URL")) or DEFAULT_BREWERY_API_URL
        timeout_ms = int(env.get("ORDER_DOWNSTREAM_TIMEOUT_MS", DEFAULT_DOWNSTREAM_TIMEOUT_MS))
        if timeout_ms <= 0:
            raise ValueError("ORDER_DOWNSTREAM_TIMEOUT_MS must be positive")

        return cls(
            environment=env.get("NODE_ENV") or env.get("ENVIRONMENT") or "development",
            brewery_api_url=brewery_api_url,
            cart_service_url=_url(env.get("CART_SERVICE_URL")) or brewery_api_url,
            inventory_service_url=_url(env.get("INVENTORY_SERVICE_URL")) or brewery_api_url,
            order_store_url=_url(env.get("ORDER_STORE_URL")) or brewery_api_url,
            payment_service_url=_url(env.get("PAYMENT_SERVICE_URL")),
            shipping_service_url=_url(env.get("SHIPPING_SERVICE_URL")),
            notification_service_url=_url(env.get("NOTIFICATION_SERVICE_URL")),
            jwt_secret=env.get("JWT_SECRET") or None,
            jwt_algorithm=env.get("JWT_ALGORITHM", "HS256"),
            downstream_timeout_ms=timeout_ms,
            compensate_on_failure=_flag(env.get("ORDER_COMPENSATE_ON_FAILURE"), True),
            cancel_requires_ownership=_flag(env.get("ORDER_CANCEL_REQUIRES_OWNERSHIP"), True),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
        )
