import pytest
from jose import jwt

from conftest import SECRET, bearer, build_settings, client_for, make_token
from order_service.errors import AuthorizationError
from order_service.guard import authorize
from order_service.main import create_app
from order_service.security import AuthenticationError, authenticate, bearer_token


def test_authorize_accepts_owner():
    authorize("u1", "u1")
    authorize("7", 7)


@pytest.mark.parametrize(
    "actor, owner",
    [(None, "u1"), ("", "u1"), ("u2", "u1"), ("u1", None)],
)
def test_authorize_rejects(actor, owner):
    with pytest.raises(AuthorizationError) as info:
        authorize(actor, owner)
    assert info.value.status_code == 403
    assert info.value.message == "Unauthorized"


def test_bearer_token_parsing():
    assert bearer_token("Bearer abc") == "abc"
    assert bearer_token("bearer  abc ") == "abc"
    assert bearer_token("Basic abc") is None
    assert bearer_token("Bearer ") is None
    assert bearer_token(None) is None


def test_authenticate_reads_identity_claims():
    header = f"Bearer {make_token('u1', email='a@b.c')}"
    ctx = authenticate(header, "test-secret", correlation_id="c-1")
    assert ctx.user_id == "u1"
    assert ctx.email == "a@b.c"
    assert ctx.authorization == header
    assert ctx.correlation_id == "c-1"


def test_authenticate_rejects_expired_token():
    header = f"Bearer {make_token('u1', ttl=-60)}"
    with pytest.raises(AuthenticationError) as info:
        authenticate(header, "test-secret")
    assert info.value.status_code == 401
    assert info.value.message == "Invalid or expired token"


@pytest.mark.asyncio
async def test_missing_token(app, services):
    async with client_for(app) as client:
        response = await client.get("/order/o1")

    assert response.status_code == 401
    assert response.json() == {"message": "No token provided"}
    assert services.calls == []


@pytest.mark.asyncio
async def test_token_signed_with_another_secret(app, services):
    async with client_for(app) as client:
        response = await client.get("/order/o1", headers=bearer("u1", secret="other"))

    assert response.status_code == 401
    assert response.json() == {"message": "Invalid or expired token"}


@pytest.mark.asyncio
async def test_service_without_secret(services):
    app = create_app(build_settings(jwt_secret=None), transport=services.transport())

    async with client_for(app) as client:
        response = await client.get("/order/o1", headers=bearer("u1"))

    assert response.status_code == 500
    assert response.json() == {"message": "JWT secret is not defined"}


@pytest.mark.asyncio
async def test_identity_without_id_is_refused_everywhere(app, services, order_record):
    services.on("GET", "/api/order/o1", json=order_record)
    headers = bearer(None)

    async with client_for(app) as client:
        responses = [
            await client.post("/order/create", json={"user_id": "u1"}, headers=headers),
            await client.get("/order/o1", headers=headers),
            await client.put("/order/o1/status", json={"status": "Shipped"}, headers=headers),
            await client.delete("/order/orders/o1", headers=headers),
            await client.get("/order/user/u1", headers=headers),
            await client.get("/order", headers=headers),
        ]

    assert [r.status_code for r in responses] == [403] * 6
    assert {c.method for c in services.calls} == {"GET"}
    assert {c.path for c in services.calls} == {"/api/order/o1"}


@pytest.mark.asyncio
@pytest.mark.parametrize("claims", [{"id": 1.5, "email": "x"}, {"id": True}, {"id": "u1", "email": {"a": 1}}])
async def test_signed_token_with_malformed_identity(app, services, claims):
    token = jwt.encode(claims, SECRET, algorithm="HS256")

    async with client_for(app) as client:
        response = await client.get("/order/o1", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json() == {"message": "Invalid or expired token"}
    assert services.calls == []
