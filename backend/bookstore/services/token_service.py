# Overview: Signing and verification of access/refresh JWTs.

"""
Stateless signed credentials.

Access and refresh tokens carry the same identity claims (sub, email, role)
plus a `type` discriminator, and are signed with different secrets. A token
verified against the wrong type fails even if the secrets were ever shared.

Failure kinds differ on purpose:
- access token problems  -> UnauthorizedError (client retries via refresh)
- refresh token problems -> TokenExpiredError (client must log in again)
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

import jwt
from flask import current_app

from ..errors import TokenExpiredError, UnauthorizedError
from ..time_utils import duration_to_seconds, from_timestamp, utcnow


TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_REFRESH = "refresh"

# Used when a refresh token's exp claim cannot be read
DEFAULT_REFRESH_EXPIRY = timedelta(days=7)


@dataclass(frozen=True)
class TokenClaims:
    sub: str
    email: str
    role: str
    type: str


def access_token_ttl_seconds() -> int:
    return duration_to_seconds(current_app.config["ACCESS_TOKEN_TTL"])


def refresh_token_ttl_seconds() -> int:
    return duration_to_seconds(current_app.config["REFRESH_TOKEN_TTL"])


def _secret_for(token_type: str) -> str:
    if token_type == TOKEN_TYPE_ACCESS:
        return current_app.config["JWT_ACCESS_SECRET"]
    return current_app.config["JWT_REFRESH_SECRET"]


def _sign(sub: str, email: str, role: str, token_type: str, ttl_seconds: int) -> str:
    now = utcnow()
    payload = {
        "sub": sub,
        "email": email,
        "role": role,
        "type": token_type,
        "iat": now,
        "exp": now + timedelta(seconds=ttl_seconds),
        # Two tokens minted in the same second must still differ
        "jti": secrets.token_hex(16),
    }
    return jwt.encode(payload, _secret_for(token_type), algorithm=current_app.config["JWT_ALGORITHM"])


def sign_access_token(sub: str, email: str, role: str) -> str:
    return _sign(sub, email, role, TOKEN_TYPE_ACCESS, access_token_ttl_seconds())


def sign_refresh_token(sub: str, email: str, role: str) -> str:
    return _sign(sub, email, role, TOKEN_TYPE_REFRESH, refresh_token_ttl_seconds())


def _decode(token: str, token_type: str) -> TokenClaims:
    payload = jwt.decode(
        token,
        _secret_for(token_type),
        algorithms=[current_app.config["JWT_ALGORITHM"]],
        options={"require": ["exp", "sub", "type"]},
    )
    if payload.get("type") != token_type:
        raise jwt.InvalidTokenError(f"Expected {token_type} token")
    return TokenClaims(
        sub=str(payload["sub"]),
        email=payload.get("email", ""),
        role=payload.get("role", ""),
        type=payload["type"],
    )


def verify_access_token(token: str) -> TokenClaims:
    try:
        return _decode(token, TOKEN_TYPE_ACCESS)
    except jwt.PyJWTError as exc:
        raise UnauthorizedError("Invalid or expired token") from exc


def verify_refresh_token(token: str) -> TokenClaims:
    try:
        return _decode(token, TOKEN_TYPE_REFRESH)
    except jwt.PyJWTError as exc:
        raise TokenExpiredError("Invalid refresh token") from exc


def token_expiry(token: str) -> datetime:
    """
    Read the exp claim without verifying the signature.

    Falls back to now + DEFAULT_REFRESH_EXPIRY when the claim is missing or
    the token cannot be decoded.
    """
    try:
        payload = jwt.decode(token, options={"verify_signature": False})
        exp = payload.get("exp")
        if exp is not None:
            return from_timestamp(exp)
    except (jwt.PyJWTError, TypeError, ValueError, OverflowError):
        current_app.logger.debug("Could not read exp claim; using default refresh expiry")
    return utcnow() + DEFAULT_REFRESH_EXPIRY
