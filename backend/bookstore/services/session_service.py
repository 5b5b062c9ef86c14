# Overview: Service-layer operations for sessions; login, refresh-token rotation and revocation.

"""
Refresh-token session management.

Each login creates one persisted RefreshToken row next to a pair of signed
tokens. The row is what makes a refresh token revocable: a signature that
still verifies is not enough, the row must be unrevoked and unexpired too.

SECURITY FEATURES:
- Rotation is single-use: the old row is revoked and the new row inserted
  in one write transaction (BEGIN IMMEDIATE on SQLite), guarded by a
  conditional UPDATE so two concurrent rotations of the same token cannot
  both succeed
- Logout revokes by raw token string even if the signature no longer verifies
- Rows are never deleted on the request path (audit trail)
- Tracks client IP and user agent per grant
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from ..extensions import db
from ..errors import ForbiddenError, TokenExpiredError, UnauthorizedError
from ..models import RefreshToken, User, UserStatus
from ..time_utils import utcnow
from . import activity_service, auth_service, token_service
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry


TOKEN_TYPE = "Bearer"


@dataclass
class IssuedSession:
    """Token pair handed to the client, plus the persisted refresh record."""
    access_token: str
    refresh_token: str
    expires_in: int
    issued_at: datetime
    access_token_expires_at: datetime
    refresh_token_expires_at: datetime
    user: User
    record: RefreshToken


@dataclass
class RevokedSession:
    user_id: str | None
    revoked_at: datetime


def _sign_pair(user: User) -> tuple[str, str]:
    role = user.role.value
    access_token = token_service.sign_access_token(user.id, user.email, role)
    refresh_token = token_service.sign_refresh_token(user.id, user.email, role)
    return access_token, refresh_token


def _new_record(
    user: User,
    refresh_token: str,
    user_agent: str | None,
    ip_address: str | None,
) -> RefreshToken:
    return RefreshToken(
        token=refresh_token,
        user_id=user.id,
        expires_at=token_service.token_expiry(refresh_token),
        user_agent=user_agent,
        ip_address=ip_address,
        revoked=False,
    )


def _issued(user: User, access_token: str, refresh_token: str, record: RefreshToken) -> IssuedSession:
    expires_in = token_service.access_token_ttl_seconds()
    issued_at = utcnow()
    return IssuedSession(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=expires_in,
        issued_at=issued_at,
        access_token_expires_at=issued_at + timedelta(seconds=expires_in),
        refresh_token_expires_at=record.expires_at,
        user=user,
        record=record,
    )


def issue_session(
    user: User,
    user_agent: str | None = None,
    ip_address: str | None = None,
    *,
    commit: bool = True,
) -> IssuedSession:
    """
    Sign an access/refresh pair for user and persist the refresh grant.

    Side effect: one new RefreshToken row.
    """
    access_token, refresh_token = _sign_pair(user)
    record = _new_record(user, refresh_token, user_agent, ip_address)
    db.session.add(record)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return _issued(user, access_token, refresh_token, record)


def login(
    email: str,
    password: str,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> IssuedSession:
    """
    Authenticate by email/password and issue a session.

    Raises UnauthorizedError on unknown email or wrong password (same
    message for both), ForbiddenError if the account is not ACTIVE.
    """
    user = auth_service.find_user_by_email(email)
    if not user:
        raise UnauthorizedError("Invalid credentials")

    if user.status != UserStatus.ACTIVE:
        raise ForbiddenError("Account disabled")

    if not auth_service.verify_password(password, user.password_hash):
        raise UnauthorizedError("Invalid credentials")

    user.last_login_at = utcnow()
    issued = issue_session(user, user_agent=user_agent, ip_address=ip_address)

    activity_service.record_activity_safely(
        user.id, "USER_LOGGED_IN", {"email": user.email}, ip_address=ip_address
    )
    return issued


def rotate_session(
    refresh_token: str,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> IssuedSession:
    """
    Exchange a refresh token for a fresh pair and invalidate the old one.

    The signature is checked first; the persisted row is then re-checked
    because a cryptographically valid token may already be revoked (logout).
    Revoke-old and create-new commit together or not at all.
    """
    token_service.verify_refresh_token(refresh_token)

    def _op():
        begin_write_transaction()

        now = utcnow()
        stored = lock_for_update(
            db.session.query(RefreshToken).filter_by(token=refresh_token, revoked=False)
        ).first()
        if not stored or stored.expires_at <= now:
            raise TokenExpiredError("Refresh token expired")

        user = db.session.get(User, stored.user_id)
        if not user or not user.is_active:
            raise TokenExpiredError("Refresh token expired")

        # Conditional revoke: a concurrent rotation that got here first wins
        revoked_rows = db.session.query(RefreshToken).filter(
            RefreshToken.id == stored.id,
            RefreshToken.revoked.is_(False),
        ).update(
            {RefreshToken.revoked: True, RefreshToken.revoked_at: now},
            synchronize_session="fetch",
        )
        if revoked_rows != 1:
            raise TokenExpiredError("Refresh token expired")

        access_token, new_refresh_token = _sign_pair(user)
        record = _new_record(user, new_refresh_token, user_agent, ip_address)
        db.session.add(record)
        db.session.commit()
        return _issued(user, access_token, new_refresh_token, record)

    issued = run_with_retry(_op)

    activity_service.record_activity_safely(
        issued.user.id, "TOKEN_REFRESHED", {"sessionId": issued.record.id}, ip_address=ip_address
    )
    return issued


def revoke_session(refresh_token: str) -> RevokedSession:
    """
    Logout: make this refresh token unusable from now on.

    Verification errors are ignored on purpose; a client logging out with an
    already-invalid token still succeeds. Idempotent.
    """
    try:
        token_service.verify_refresh_token(refresh_token)
    except TokenExpiredError:
        pass

    revoked_at = utcnow()
    rows = db.session.query(RefreshToken).filter_by(token=refresh_token).all()

    user_id = None
    for row in rows:
        user_id = row.user_id
        if not row.revoked:
            row.revoked = True
        if row.revoked_at is None:
            row.revoked_at = revoked_at

    db.session.commit()

    if user_id is not None:
        activity_service.record_activity_safely(user_id, "USER_LOGGED_OUT")

    return RevokedSession(user_id=user_id, revoked_at=revoked_at)


def revoke_all_user_sessions(user_id: str, *, commit: bool = True) -> int:
    """
    Revoke every live refresh grant of a user.

    Returns count of sessions revoked.

    WHY: account deactivation and self-deletion must end all devices.
    """
    now = utcnow()

    sessions = db.session.query(RefreshToken).filter_by(
        user_id=user_id,
        revoked=False
    ).all()

    for session in sessions:
        session.revoked = True
        session.revoked_at = now

    if commit:
        db.session.commit()
    return len(sessions)


def cleanup_expired_sessions(retention_days: int = 30) -> int:
    """
    Delete refresh rows that are older than the retention window AND
    already expired or revoked.

    Returns count of rows deleted. Run from the CLI, never from a request.
    """
    now = utcnow()
    cutoff = now - timedelta(days=retention_days)

    deleted = db.session.query(RefreshToken).filter(
        db.or_(
            RefreshToken.expires_at < now,
            RefreshToken.revoked.is_(True),
        ),
        RefreshToken.created_at < cutoff,
    ).delete(synchronize_session=False)

    db.session.commit()
    return deleted
