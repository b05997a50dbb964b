"""Bearer-token authentication and the authorization policies built on it.

Tokens are HS256 JWTs signed with ``settings.secret_key`` carrying the
``username`` and ``isAdmin`` claims.

``get_auth_context`` is the identify step: it never fails a request, it only
decides whether downstream checks see an identity. The ``require_*``
dependencies then enforce one policy each:

    require_logged_in       any verified identity
    require_admin           identity with isAdmin
    require_user_or_admin   identity matching the {username} path segment, or admin

Each policy is also available as a plain ``ensure_*`` function taking the
context explicitly, which is what the dependencies delegate to.
"""
from __future__ import annotations

import re
import time
from typing import Annotated, Optional

import structlog
from fastapi import Depends, Request
from jose import JWTError, jwt
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from errors import UnauthorizedError
from settings import get_settings

logger = structlog.get_logger(__name__)

_BEARER = re.compile(r"^\s*bearer\s+(\S+)\s*$", re.IGNORECASE)


class AuthContext(BaseModel):
    """Verified identity of the caller; immutable once built."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    username: str
    is_admin: bool = Field(alias="isAdmin")


def create_token(username: str, is_admin: bool) -> str:
    settings = get_settings()
    claims = {"username": username, "isAdmin": is_admin, "iat": int(time.time())}
    return jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> AuthContext:
    """Verify a signed token and return its claims.

    Raises UnauthorizedError on a bad signature or malformed claims.
    """
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
        return AuthContext.model_validate(payload)
    except (JWTError, ValidationError) as exc:
        logger.warning("JWT verification failed", exc=str(exc))
        raise UnauthorizedError("Invalid token")


def authenticate_jwt(authorization: Optional[str]) -> Optional[AuthContext]:
    """Identify the caller from an ``Authorization`` header value.

    Missing, malformed or unverifiable credentials yield None (anonymous).
    """
    if not authorization:
        return None
    match = _BEARER.match(authorization)
    if not match:
        logger.warning("Ignoring malformed Authorization header")
        return None
    try:
        return verify_token(match.group(1))
    except UnauthorizedError:
        return None


def ensure_logged_in(auth: Optional[AuthContext]) -> AuthContext:
    if auth is None:
        raise UnauthorizedError("You must be logged in")
    return auth


def ensure_admin(auth: Optional[AuthContext]) -> AuthContext:
    if auth is None or auth.is_admin is not True:
        raise UnauthorizedError("You must be an admin")
    return auth


def ensure_user_or_admin(auth: Optional[AuthContext], username: str) -> AuthContext:
    if auth is None or not (auth.is_admin is True or auth.username == username):
        raise UnauthorizedError("You must be the user or an admin")
    return auth


# Helper to extract Authorization header (works with FastAPI DI)
def _get_authorization_header(request: Request) -> Optional[str]:
    return request.headers.get("Authorization")


# --- FastAPI dependencies ---
async def get_auth_context(
    authorization: Annotated[Optional[str], Depends(_get_authorization_header)],
) -> Optional[AuthContext]:
    auth = authenticate_jwt(authorization)
    # Bound on the request task so later log lines for this request carry it
    if auth is not None:
        structlog.contextvars.bind_contextvars(username=auth.username)
    return auth


def require_logged_in(
    auth: Annotated[Optional[AuthContext], Depends(get_auth_context)],
) -> AuthContext:
    return ensure_logged_in(auth)


def require_admin(
    auth: Annotated[Optional[AuthContext], Depends(get_auth_context)],
) -> AuthContext:
    return ensure_admin(auth)


def require_user_or_admin(
    username: str,
    auth: Annotated[Optional[AuthContext], Depends(get_auth_context)],
) -> AuthContext:
    return ensure_user_or_admin(auth, username)
