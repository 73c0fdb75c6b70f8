"""Bearer JWT authentication.

Tokens are HS256-signed by the identity service with ``AUTH_JWT_SECRET``.
Claims used: ``sub`` (user id), ``roles`` (list, e.g. ``["host"]``) and
``exp``.

Provides:
- verify_token(): Validates JWT and returns its claims
- get_current_user(): FastAPI dependency for authenticated user context
- require_role(): FastAPI dependency factory for role checks
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Callable

import jwt
from fastapi import Depends, HTTPException, Request

ROLE_HOST = "host"
ROLE_ADMIN = "admin"


@dataclass
class CurrentUser:
    """Authenticated user context."""

    id: str
    roles: list[str] = field(default_factory=list)

    def has_any_role(self, *roles: str) -> bool:
        return any(role in self.roles for role in roles)


def verify_token(token: str) -> dict[str, Any]:
    """Verify JWT and return its claims.

    Raises:
        HTTPException: 401 if the token is invalid, expired or auth is not
            configured.
    """
    secret = os.environ.get("AUTH_JWT_SECRET")
    if not secret:
        raise HTTPException(status_code=401, detail="Auth not configured")

    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=["HS256"],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")

    if not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid token")
    return payload


def _extract_bearer_token(request: Request) -> str:
    """Extract Bearer token from Authorization header.

    Raises:
        HTTPException: 401 if header missing or malformed.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise HTTPException(status_code=401, detail="Missing authorization header")

    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid authorization header")

    return parts[1]


def get_current_user(request: Request) -> CurrentUser:
    """FastAPI dependency: get authenticated user."""
    claims = verify_token(_extract_bearer_token(request))
    roles = claims.get("roles") or []
    if not isinstance(roles, list):
        roles = [str(roles)]
    return CurrentUser(id=str(claims["sub"]), roles=[str(r) for r in roles])


def require_role(*roles: str) -> Callable[..., CurrentUser]:
    """Create a dependency that requires one of ``roles``.

    Usage:
        @router.get("/something")
        def endpoint(user: CurrentUser = Depends(require_role("admin"))):
            ...
    """

    def dependency(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not user.has_any_role(*roles):
            raise HTTPException(status_code=403, detail="Forbidden")
        return user

    return dependency


# Dependency alias for cleaner imports
CurrentUserDep = Depends(get_current_user)
