# Overview: Request authentication and role decorators for API routes.

from dataclasses import dataclass
from functools import wraps

from flask import g, request

from .errors import ForbiddenError, UnauthorizedError
from .models import UserRole
from .services import token_service


@dataclass(frozen=True)
class AuthContext:
    """Identity established from a verified access token."""
    user_id: str
    role: str
    email: str

    def has_role(self, *roles) -> bool:
        return self.role in {UserRole(role).value for role in roles}


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    return token or None


def current_auth() -> AuthContext | None:
    return getattr(g, "auth", None)


def require_auth(f):
    """
    Require a valid access token.

    Sets g.auth to an AuthContext. Works from token claims alone; the user
    row is not re-read, so a role change takes effect on the next token.

    Raises UnauthorizedError (401) if:
    - No Authorization header or not a Bearer scheme
    - Token signature, type or expiry is invalid
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            raise UnauthorizedError("Missing bearer token")

        claims = token_service.verify_access_token(token)
        g.auth = AuthContext(user_id=claims.sub, role=claims.role, email=claims.email)

        return f(*args, **kwargs)

    return decorated_function


def require_roles(*roles):
    """
    Require the authenticated user to hold one of the given roles.

    Must be applied after @require_auth. Unknown role names fail at import.
    """
    allowed = {UserRole(role).value for role in roles}

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            auth = current_auth()
            if auth is None:
                raise UnauthorizedError("Authentication required")
            if auth.role not in allowed:
                raise ForbiddenError(
                    "Insufficient permissions",
                    details={"requiredRoles": sorted(allowed)},
                )
            return f(*args, **kwargs)

        return decorated_function
    return decorator
