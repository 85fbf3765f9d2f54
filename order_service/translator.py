"""Maps failures from any step of a use case onto the outward error shape."""

from typing import Optional

from order_service.errors import DownstreamError, OrderServiceError, TransportError
from order_service.models import OutcomeError


def translate(
    exc: OrderServiceError,
    default_status: int,
    default_message: str,
    order_id: Optional[str] = None,
) -> OutcomeError:
    """Build the ``OutcomeError`` for ``exc``.

    Downstream errors keep the downstream status and fall back to the
    operation's default message when the body carries none. Transport errors
    take the operation defaults entirely. Typed domain errors carry their own
    status and message.
    """
    if isinstance(exc, DownstreamError):
        return OutcomeError(
            http_status=exc.status_code,
            message=exc.body.message or default_message,
            error=exc.body.error,
            errors=exc.body.errors,
            order_id=order_id,
        )
    if isinstance(exc, TransportError):
        return OutcomeError(
            http_status=default_status,
            message=default_message,
            error=exc.detail,
            order_id=order_id,
        )
    return OutcomeError(
        http_status=exc.status_code,
        message=exc.message,
        error=exc.detail,
        order_id=order_id,
    )


def translate_post_commit(
    exc: OrderServiceError,
    message: str,
    order_id: Optional[str],
) -> OutcomeError:
    """Failure of a step that runs after the order was committed.

    The order stays in place, so the caller gets the created order's id along
    with what went wrong.
    """
    if isinstance(exc, DownstreamError):
        status = exc.status_code
        detail = exc.body.message or exc.body.error
    elif isinstance(exc, TransportError):
        status = 502
        detail = exc.detail
    else:
        status = exc.status_code
        detail = exc.detail or exc.message
    return OutcomeError(http_status=status, message=message, error=detail, order_id=order_id)
