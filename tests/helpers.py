"""Shared test helper functions for holdfast tests.

Regular functions (not fixtures), importable from any test module.
"""

from __future__ import annotations

import time

import jwt

TEST_JWT_SECRET = "test-secret-for-holdfast-jwt-signing"
TEST_TASK_SECRET = "test-internal-task-secret"
PROPERTY_ID = "prop-1"


def make_token(
    sub: str,
    roles: list[str] | None = None,
    *,
    secret: str = TEST_JWT_SECRET,
    expires_in: int = 300,
) -> str:
    payload = {"sub": sub, "roles": roles or [], "exp": int(time.time()) + expires_in}
    return jwt.encode(payload, secret, algorithm="HS256")


def auth_headers(sub: str, roles: list[str] | None = None, **extra: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(sub, roles)}", **extra}
