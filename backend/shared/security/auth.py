"""
Staff authentication.

Bearer tokens are issued by the central auth service and only verified
here. The verified claims (sub, roles, email) become the request's user
context; voids and tab closes are authorized against it.
"""

from __future__ import annotations

import time
import uuid
from typing import Any

import jwt
from fastapi import Header, HTTPException, status

from shared.config.constants import ErrorMessages
from shared.config.logging import get_logger
from shared.config.settings import JWT_AUDIENCE, JWT_ISSUER, JWT_SECRET, settings

logger = get_logger(__name__)

ALGORITHM = "HS256"


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def sign_jwt(payload: dict[str, Any], ttl_seconds: int | None = None) -> str:
    """Sign an access token carrying ``payload``. Used by the CLI and tests."""
    if ttl_seconds is None:
        ttl_seconds = settings.jwt_access_token_expire_minutes * 60
    issued_at = int(time.time())
    claims = {
        **payload,
        "iss": JWT_ISSUER,
        "aud": JWT_AUDIENCE,
        "iat": issued_at,
        "exp": issued_at + ttl_seconds,
        "type": "access",
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(claims, JWT_SECRET, algorithm=ALGORITHM)


def verify_jwt(token: str) -> dict[str, Any]:
    """
    Decode an access token and check its claims.

    Raises:
        HTTPException(401): bad signature, expired, wrong audience/issuer,
            missing or non-numeric subject, or not an access token.
    """
    try:
        claims = jwt.decode(
            token,
            JWT_SECRET,
            algorithms=[ALGORITHM],
            audience=JWT_AUDIENCE,
            issuer=JWT_ISSUER,
        )
    except jwt.ExpiredSignatureError:
        raise _unauthorized(ErrorMessages.TOKEN_EXPIRED)
    except jwt.InvalidTokenError as e:
        # Reason stays in the log, the caller gets the generic message
        logger.warning("JWT validation failed", error=str(e))
        raise _unauthorized(ErrorMessages.INVALID_TOKEN)

    if not str(claims.get("sub", "")).isdigit():
        raise _unauthorized("Invalid token: missing or malformed subject claim")
    if claims.get("type", "access") != "access":
        raise _unauthorized("Invalid token: not an access token")
    return claims


def get_bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise _unauthorized("Missing Authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme != "Bearer" or not token.strip():
        raise _unauthorized("Invalid Authorization header format. Expected: Bearer <token>")
    return token.strip()


def current_user_context(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, Any]:
    """
    FastAPI dependency returning the verified claims of the caller.

        @router.post("/{order_id}/confirm")
        def confirm(order_id: int, ctx: dict = Depends(current_user_context)):
            user_id = int(ctx["sub"])
    """
    return verify_jwt(get_bearer_token(authorization))


def require_roles(ctx: dict[str, Any], allowed: list[str] | frozenset[str]) -> None:
    """Raise 403 unless the caller holds at least one of ``allowed``."""
    if set(ctx.get("roles", [])).isdisjoint(allowed):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"{ErrorMessages.INSUFFICIENT_PERMISSIONS}. Required role: one of {sorted(allowed)}",
        )
