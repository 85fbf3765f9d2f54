from typing import Optional

from order_service.models import DownstreamErrorBody, OutcomeError


class OrderServiceError(Exception):
    """Base class for every failure a use case can report."""

    status_code = 500

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail


class ValidationError(OrderServiceError):
    status_code = 400


class AuthorizationError(OrderServiceError):
    status_code = 403

    def __init__(self, message: str = "Unauthorized", detail: Optional[str] = None):
        super().__init__(message, detail)


class NotFoundError(OrderServiceError):
    status_code = 404


class BusinessRuleError(OrderServiceError):
    """A client-fault rule violation such as an empty cart or a stock shortage."""

    status_code = 400


class InsufficientStockError(BusinessRuleError):
    def __init__(self, inventory_id: str, requested: int, available: int):
        super().__init__(f"Insufficient stock for product {inventory_id}")
        self.inventory_id = inventory_id
        self.requested = requested
        self.available = available


class DownstreamError(OrderServiceError):
    """A downstream service answered with an error status."""

    def __init__(self, service: str, status_code: int, body: Optional[DownstreamErrorBody] = None):
        self.service = service
        self.status_code = status_code
        self.body = body or DownstreamErrorBody()
        super().__init__(
            self.body.message or f"{service} service returned {status_code}",
            self.body.error,
        )


class TransportError(OrderServiceError):
    """No response at all: connection refused, timeout, protocol failure."""

    def __init__(self, service: str, detail: str):
        super().__init__(f"{service} service unreachable", detail)
        self.service = service


class OrderRequestFailed(Exception):
    """Raised by the orchestrator once a failure has been translated."""

    def __init__(self, outcome: OutcomeError):
        super().__init__(outcome.message)
        self.outcome = outcome
