from typing import Optional

from order_service.errors import AuthorizationError


def authorize(actor_id: Optional[str], owner_id: Optional[str]) -> None:
    """Raise ``AuthorizationError`` unless the actor owns the resource."""
    if not actor_id:
        raise AuthorizationError()
    if owner_id is None or str(actor_id) != str(owner_id):
        raise AuthorizationError()
