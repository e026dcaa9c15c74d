"""
Bearer-token check for the HTTP layer.

Tokens are HS256 JWTs whose `username` claim names the poster. Issuing tokens
is not this service's job; the username is trusted as-is once the signature
verifies.
"""

from __future__ import annotations

import logging
from typing import Optional

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from around.config import Settings, get_settings

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"

_bearer = HTTPBearer(auto_error=False)


def decode_username(token: str, settings: Settings) -> str:
    """Verify `token` and return its username claim; raises jwt.InvalidTokenError."""
    claims = jwt.decode(token, settings.jwt_signing_key, algorithms=[JWT_ALGORITHM])
    username = claims.get(settings.jwt_username_claim)
    if not isinstance(username, str) or not username:
        raise jwt.InvalidTokenError(
            f"missing {settings.jwt_username_claim!r} claim"
        )
    return username


def get_current_username(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    settings: Settings = Depends(get_settings),
) -> str:
    if credentials is None:
        raise HTTPException(
            status_code=401,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return decode_username(credentials.credentials, settings)
    except jwt.InvalidTokenError as exc:
        logger.info("Rejected bearer token: %s", exc)
        raise HTTPException(
            status_code=401,
            detail="Invalid bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
