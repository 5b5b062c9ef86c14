# Overview: Service-layer operations for users; registration, profile, admin edits, role/status changes.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import or_

from ..extensions import db
from ..errors import DuplicateResourceError, UnauthorizedError, UserNotFoundError
from ..models import User, UserRole, UserStatus
from ..responses import PageParams, build_page, parse_sort
from ..time_utils import utcnow
from . import activity_service, auth_service, session_service


PROFILE_FIELDS = ("name", "phone", "region", "birth_date", "gender")
ADMIN_UPDATE_FIELDS = PROFILE_FIELDS + ("status",)


def create_user(
    email: str,
    password: str,
    name: str,
    phone: str | None = None,
    region: str | None = None,
    role: UserRole = UserRole.USER,
    birth_date: datetime | None = None,
    gender: str | None = None,
) -> User:
    """
    Register a new account.

    Password must meet strength requirements or PasswordValidationError
    is raised. Email is unique (case-insensitive) or DuplicateResourceError
    is raised.
    """
    email = email.strip().lower()
    existing = db.session.query(User).filter_by(email=email).first()
    if existing:
        raise DuplicateResourceError("Email already registered", details={"field": "email"})

    user = User(
        email=email,
        password_hash=auth_service.hash_password(password),
        name=name,
        phone=phone,
        region=region,
        birth_date=birth_date,
        gender=gender,
        role=role,
        status=UserStatus.ACTIVE,
    )
    db.session.add(user)
    db.session.commit()

    activity_service.record_activity_safely(user.id, "USER_REGISTERED", {"email": user.email})
    return user


def get_user(user_id: str) -> User:
    user = db.session.query(User).filter(
        User.id == user_id,
        User.deleted_at.is_(None),
    ).first()
    if not user:
        raise UserNotFoundError("User not found")
    return user


SORTABLE_FIELDS = {
    "createdAt": User.created_at,
    "email": User.email,
    "name": User.name,
    "lastLoginAt": User.last_login_at,
}


def list_users(
    params: PageParams,
    role: UserRole | None = None,
    status: UserStatus | None = None,
    keyword: str | None = None,
) -> dict:
    query = db.session.query(User).filter(User.deleted_at.is_(None))
    if role is not None:
        query = query.filter(User.role == role)
    if status is not None:
        query = query.filter(User.status == status)
    if keyword:
        pattern = f"%{keyword}%"
        query = query.filter(or_(
            User.email.ilike(pattern),
            User.name.ilike(pattern),
            User.region.ilike(pattern),
        ))

    column, descending = parse_sort(params.sort, SORTABLE_FIELDS, default="createdAt")
    total = query.count()
    users = (
        query.order_by(column.desc() if descending else column.asc(), User.id)
        .offset(params.offset)
        .limit(params.size)
        .all()
    )
    return build_page([user.to_dict() for user in users], total, params)


def update_profile(user_id: str, changes: dict) -> User:
    """Apply self-service profile changes; other keys are ignored."""
    user = get_user(user_id)
    for field in PROFILE_FIELDS:
        if field in changes:
            setattr(user, field, changes[field])
    db.session.commit()
    return user


def update_user(user_id: str, changes: dict, actor_user_id: str | None = None) -> User:
    """
    Staff edit of profile fields and status.

    A status other than ACTIVE revokes all sessions in the same commit, as
    change_status does.
    """
    user = get_user(user_id)
    applied = []
    for field in ADMIN_UPDATE_FIELDS:
        if field in changes:
            setattr(user, field, changes[field])
            applied.append(field)

    if "status" in changes and user.status != UserStatus.ACTIVE:
        session_service.revoke_all_user_sessions(user.id, commit=False)
    db.session.commit()

    activity_service.record_activity_safely(
        actor_user_id, "USER_UPDATED", {"userId": user.id, "fields": applied}
    )
    return user


def deactivate_user(user_id: str, actor_user_id: str | None = None) -> User:
    """Admin delete: the account becomes INACTIVE and its sessions end. The row stays."""
    return change_status(user_id, UserStatus.INACTIVE, actor_user_id=actor_user_id)


def change_role(user_id: str, role: UserRole, actor_user_id: str | None = None) -> User:
    user = get_user(user_id)
    previous = user.role
    user.role = role
    db.session.commit()

    activity_service.record_activity_safely(
        actor_user_id,
        "USER_ROLE_CHANGED",
        {"userId": user.id, "from": previous.value, "to": role.value},
    )
    return user


def change_status(user_id: str, status: UserStatus, actor_user_id: str | None = None) -> User:
    """
    Set account status. Leaving ACTIVE revokes every refresh grant in the
    same commit so a disabled user cannot keep rotating tokens.
    """
    user = get_user(user_id)
    previous = user.status
    user.status = status
    if status != UserStatus.ACTIVE:
        session_service.revoke_all_user_sessions(user.id, commit=False)
    db.session.commit()

    activity_service.record_activity_safely(
        actor_user_id,
        "USER_STATUS_CHANGED",
        {"userId": user.id, "from": previous.value, "to": status.value},
    )
    return user


def soft_delete_self(user_id: str, password: str) -> User:
    """
    Self-service account deletion.

    Re-verifies the password, marks the account INACTIVE with deleted_at,
    and revokes all sessions.
    """
    user = get_user(user_id)
    if not auth_service.verify_password(password, user.password_hash):
        raise UnauthorizedError("Invalid credentials")

    user.status = UserStatus.INACTIVE
    user.deleted_at = utcnow()
    session_service.revoke_all_user_sessions(user.id, commit=False)
    db.session.commit()

    activity_service.record_activity_safely(user.id, "USER_DELETED")
    return user
