from typing import Optional

from fastapi import Header, Request

from order_service.models import AuthContext
from order_service.orchestrator import OrderOrchestrator
from order_service.security import authenticate


def get_current_user(request: Request, authorization: Optional[str] = Header(None)) -> AuthContext:
    settings = request.app.state.settings
    return authenticate(
        authorization,
        settings.jwt_secret,
        settings.jwt_algorithm,
        correlation_id=getattr(request.state, "correlation_id", None),
    )


def get_orchestrator(request: Request) -> OrderOrchestrator:
    return request.app.state.orchestrator
