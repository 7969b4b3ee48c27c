"""
guildboard.api.deps — FastAPI dependency injection
===================================================

Shared dependencies for every router: the process-wide engine and
config, and the bearer-token check that identifies the acting admin.
Tokens are minted by the login service that fronts the dashboard; this
API only verifies them.
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from guildboard.config import GuildboardConfig, load_config
from guildboard.database.engine import create_db_engine

JWT_ALGORITHM = "HS256"

# Placeholders that ship in .env.example and docs.
_PLACEHOLDER_SECRETS = frozenset({
    "guildboard-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
})

_SECRET_MIN_CHARS = 32


def _load_jwt_secret() -> str:
    """Read JWT_SECRET and refuse to start with an unusable one."""
    secret = os.getenv("JWT_SECRET", "").strip()
    problem = None
    if not secret:
        problem = (
            "JWT_SECRET environment variable is not set. Generate one with "
            "`openssl rand -base64 48` and add it to .env."
        )
    elif secret in _PLACEHOLDER_SECRETS:
        problem = f"JWT_SECRET is still a known weak default ({secret!r})."
    elif len(secret) < _SECRET_MIN_CHARS:
        problem = (
            f"JWT_SECRET is too short: {len(secret)} of at least "
            f"{_SECRET_MIN_CHARS} characters."
        )
    if problem:
        raise RuntimeError(problem)
    return secret


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> GuildboardConfig:
    return load_config()


def _bearer_token(authorization: str | None) -> str:
    scheme, _, token = (authorization or "").partition(" ")
    if scheme != "Bearer" or not token:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    return token


def get_current_admin(
    authorization: Annotated[str | None, Header()] = None,
) -> dict:
    """Decode the bearer token and return its claims.

    ``sub`` is the admin's Discord user id.  It is recorded as the
    initiator of anything the admin queues, so a token without one is
    rejected just like a forged token.
    """
    try:
        claims = jwt.decode(
            _bearer_token(authorization), JWT_SECRET, algorithms=[JWT_ALGORITHM],
        )
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    if not claims.get("sub"):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Token has no subject")
    if not claims.get("is_admin"):
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Not admin")
    return claims
