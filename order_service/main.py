import logging
from typing import Optional

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from order_service import ids
from order_service.client import Gateways
from order_service.config import Settings
from order_service.deps import get_current_user, get_orchestrator
from order_service.errors import OrderRequestFailed
from order_service.models import AuthContext, CreateOrderRequest, UpdateStatusRequest
from order_service.orchestrator import OrderOrchestrator
from order_service.security import AuthenticationError

logger = logging.getLogger("order_service")


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the service. ``transport`` replaces the network for every gateway."""
    settings = settings or Settings.from_env()

    # Configure logging
    logging.basicConfig(
        level=settings.log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    app = FastAPI(title="Order Orchestration Service")
    app.state.settings = settings
    app.state.orchestrator = OrderOrchestrator(Gateways.from_settings(settings, transport), settings)

    @app.middleware("http")
    async def add_correlation_id(request: Request, call_next):
        correlation_id = request.headers.get("X-Correlation-Id")
        if not correlation_id:
            correlation_id = ids.generate_correlation_id()

        # Store in request state for access in endpoints
        request.state.correlation_id = correlation_id

        response = await call_next(request)
        response.headers["X-Correlation-Id"] = correlation_id
        return response

    @app.exception_handler(AuthenticationError)
    async def authentication_failed(request: Request, exc: AuthenticationError):
        logger.warning(f"Authentication failed on {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

    @app.exception_handler(OrderRequestFailed)
    async def order_request_failed(request: Request, exc: OrderRequestFailed):
        return JSONResponse(status_code=exc.outcome.http_status, content=exc.outcome.body())

    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError):
        logger.info(f"Rejected malformed request on {request.method} {request.url.path}")
        return JSONResponse(status_code=400, content={"errors": jsonable_encoder(exc.errors())})

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        response = JSONResponse(status_code=500, content={"message": "Internal server error"})
        # Runs outside the correlation middleware
        correlation_id = getattr(request.state, "correlation_id", None)
        if correlation_id:
            response.headers["X-Correlation-Id"] = correlation_id
        return response

    @app.get("/health")
    def health():
        return {"status": "ok", "service": "order"}

    @app.post("/order/create", status_code=201)
    async def create_order(
        order_req: CreateOrderRequest,
        user: AuthContext = Depends(get_current_user),
        orchestrator: OrderOrchestrator = Depends(get_orchestrator),
    ):
        return await orchestrator.create_order(user, order_req)

    @app.get("/order")
    async def list_orders(
        user: Optional[str] = None,
        status: Optional[str] = None,
        actor: AuthContext = Depends(get_current_user),
        orchestrator: OrderOrchestrator = Depends(get_orchestrator),
    ):
        return await orchestrator.list_orders(actor, user, status)

    @app.get("/order/user/{user_id}")
    async def list_user_orders(
        user_id: str,
        status: Optional[str] = None,
        actor: AuthContext = Depends(get_current_user),
        orchestrator: OrderOrchestrator = Depends(get_orchestrator),
    ):
        return await orchestrator.list_orders_by_user(actor, user_id, status)

    @app.get("/order/{order_id}")
    async def get_order(
        order_id: str,
        actor: AuthContext = Depends(get_current_user),
        orchestrator: OrderOrchestrator = Depends(get_orchestrator),
    ):
        return await orchestrator.get_order(actor, order_id)

    @app.put("/order/{order_id}/status")
    async def update_order_status(
        order_id: str,
        update: UpdateStatusRequest,
        actor: AuthContext = Depends(get_current_user),
        orchestrator: OrderOrchestrator = Depends(get_orchestrator),
    ):
        return await orchestrator.update_order_status(actor, order_id, update.status.value)

    @app.delete("/order/orders/{order_id}")
    async def cancel_order(
        order_id: str,
        actor: AuthContext = Depends(get_current_user),
        orchestrator: OrderOrchestrator = Depends(get_orchestrator),
    ):
        return await orchestrator.cancel_order(actor, order_id)

    return app


app = create_app()
