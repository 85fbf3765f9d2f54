from typing import Any, Dict, Optional

from jose import JWTError, jwt
from pydantic import ValidationError as PydanticValidationError

from order_service.models import AuthContext


class AuthenticationError(Exception):
    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def decode_token(token: str, secret: str, alg: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, secret, algorithms=[alg])
    except JWTError as e:
        raise ValueError("Invalid token") from e


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1].strip() or None


def authenticate(
    authorization: Optional[str],
    secret: Optional[str],
    alg: str = "HS256",
    correlation_id: Optional[str] = None,
) -> AuthContext:
    """Resolve the caller's identity from a ``Bearer`` header.

    Raises ``AuthenticationError`` with the status to answer with when the
    header is missing, the service has no secret, or the token does not verify.
    """
    token = bearer_token(authorization)
    if not token:
        raise AuthenticationError(401, "No token provided")
    if not secret:
        raise AuthenticationError(500, "JWT secret is not defined")

    try:
        claims = decode_token(token, secret, alg)
    except ValueError:
        raise AuthenticationError(401, "Invalid or expired token")

    user_id = claims.get("id", claims.get("sub"))
    try:
        return AuthContext(
            user_id=user_id,
            email=claims.get("email"),
            authorization=authorization,
            correlation_id=correlation_id,
        )
    except PydanticValidationError:
        # Signed, but the identity claims are not ids/strings
        raise AuthenticationError(401, "Invalid or expired token")
