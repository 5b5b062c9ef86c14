# Overview: Flask API routes for auth operations; login, token refresh and logout.

"""
Authentication API routes

SECURITY FEATURES:
- Short-lived access tokens, long-lived refresh tokens with separate secrets
- Refresh tokens are single-use: every refresh rotates the pair
- Logout revokes the refresh grant server-side and is idempotent
- Same error for unknown email and wrong password
"""

from flask import Blueprint, request

from ..responses import success_response
from ..services import session_service
from ..time_utils import to_utc_z
from ..validation import get_json_body, require_string


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _client_context(data: dict) -> tuple:
    """User agent and IP from the body when the client forwards them, else from the request."""
    user_agent = data.get("userAgent") or request.headers.get("User-Agent")
    ip_address = data.get("ip") or request.remote_addr
    return user_agent, ip_address


@auth_bp.post("/login")
def login_route():
    """
    Authenticate with email/password and issue an access/refresh pair.

    401 on bad credentials, 403 if the account is not ACTIVE.
    """
    data = get_json_body()
    email = require_string(data, "email")
    password = require_string(data, "password")
    user_agent, ip_address = _client_context(data)

    issued = session_service.login(email, password, user_agent=user_agent, ip_address=ip_address)

    return success_response({
        "accessToken": issued.access_token,
        "refreshToken": issued.refresh_token,
        "tokenType": session_service.TOKEN_TYPE,
        "expiresIn": issued.expires_in,
        "issuedAt": to_utc_z(issued.issued_at),
        "user": issued.user.to_auth_dict(),
    }, message="Login successful")


@auth_bp.post("/refresh")
def refresh_route():
    """Rotate a refresh token. 401 TOKEN_EXPIRED if invalid, revoked or expired."""
    data = get_json_body()
    refresh_token = require_string(data, "refreshToken")
    user_agent, ip_address = _client_context(data)

    issued = session_service.rotate_session(refresh_token, user_agent=user_agent, ip_address=ip_address)

    return success_response({
        "accessToken": issued.access_token,
        "accessTokenExpiresAt": to_utc_z(issued.access_token_expires_at),
        "refreshToken": issued.refresh_token,
        "refreshTokenExpiresAt": to_utc_z(issued.refresh_token_expires_at),
        "userId": issued.user.id,
    }, message="Token refreshed")


@auth_bp.post("/logout")
def logout_route():
    data = get_json_body()
    refresh_token = require_string(data, "refreshToken")

    revoked = session_service.revoke_session(refresh_token)

    return success_response({
        "userId": revoked.user_id,
        "revokedAt": to_utc_z(revoked.revoked_at),
    }, message="Logout successful")
