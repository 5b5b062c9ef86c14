# Overview: Flask API routes for users; registration, self-service profile and admin management.

from flask import Blueprint, request

from ..decorators import current_auth, require_auth, require_roles
from ..errors import ValidationFailedError
from ..models import UserRole, UserStatus
from ..responses import get_page_params, success_response
from ..services import order_service, user_service
from ..time_utils import parse_iso_datetime
from ..validation import get_json_body, parse_enum, require_email, require_string


users_bp = Blueprint("users", __name__, url_prefix="/users")


def _parse_birth_date(data: dict):
    value = data.get("birthDate")
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationFailedError("birthDate must be an ISO-8601 date", details={"field": "birthDate"})
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationFailedError("birthDate must be an ISO-8601 date", details={"field": "birthDate"})


def _parse_profile_changes(data: dict) -> dict:
    """Only keys present in the body become changes."""
    changes = {}
    if "name" in data:
        changes["name"] = require_string(data, "name", max_length=120)
    if "phone" in data:
        changes["phone"] = require_string(data, "phone", required=False, min_length=7, max_length=20)
    if "region" in data:
        changes["region"] = require_string(data, "region", required=False, max_length=120)
    if "birthDate" in data:
        changes["birth_date"] = _parse_birth_date(data)
    if "gender" in data:
        changes["gender"] = require_string(data, "gender", required=False, max_length=20)
    return changes


@users_bp.post("")
def register_route():
    """
    Public self-registration. New accounts are always USER / ACTIVE.

    Returns 409 DUPLICATE_RESOURCE if the email is taken and 422 if the
    password is too weak.
    """
    data = get_json_body()
    email = require_email(data)
    password = require_string(data, "password")
    name = require_string(data, "name", max_length=120)
    phone = require_string(data, "phone", required=False, min_length=7, max_length=20)
    region = require_string(data, "region", required=False, max_length=120)
    gender = require_string(data, "gender", required=False, max_length=20)

    user = user_service.create_user(
        email,
        password,
        name,
        phone=phone,
        region=region,
        birth_date=_parse_birth_date(data),
        gender=gender,
    )
    return success_response(user.to_dict(), message="User registered", status=201)


@users_bp.get("/me")
@require_auth
def get_me_route():
    user = user_service.get_user(current_auth().user_id)
    return success_response(user.to_dict())


@users_bp.patch("/me")
@require_auth
def update_me_route():
    data = get_json_body()
    user = user_service.update_profile(current_auth().user_id, _parse_profile_changes(data))
    return success_response(user.to_dict(), message="Profile updated")


@users_bp.delete("/me")
@require_auth
def delete_me_route():
    """Soft-delete own account after re-entering the password. All sessions end."""
    data = get_json_body()
    password = require_string(data, "password")

    user = user_service.soft_delete_self(current_auth().user_id, password)
    return success_response({"id": user.id}, message="Account deleted")


@users_bp.get("")
@require_auth
@require_roles(UserRole.ADMIN, UserRole.CURATOR)
def list_users_route():
    params = get_page_params(request.args)
    page = user_service.list_users(
        params,
        role=parse_enum(UserRole, request.args.get("role"), "role", required=False),
        status=parse_enum(UserStatus, request.args.get("status"), "status", required=False),
        keyword=(request.args.get("keyword") or "").strip() or None,
    )
    return success_response(page)


@users_bp.get("/<user_id>")
@require_auth
@require_roles(UserRole.ADMIN, UserRole.CURATOR)
def get_user_route(user_id: str):
    return success_response(user_service.get_user(user_id).to_dict())


@users_bp.patch("/<user_id>")
@require_auth
@require_roles(UserRole.ADMIN, UserRole.CURATOR)
def update_user_route(user_id: str):
    """Staff edit: profile fields plus status. Role changes go through /role."""
    data = get_json_body()
    changes = _parse_profile_changes(data)
    if "status" in data:
        changes["status"] = parse_enum(UserStatus, data.get("status"), "status")

    user = user_service.update_user(user_id, changes, actor_user_id=current_auth().user_id)
    return success_response(user.to_dict(), message="User updated")


@users_bp.delete("/<user_id>")
@require_auth
@require_roles(UserRole.ADMIN)
def delete_user_route(user_id: str):
    """Deactivate the account. Nothing is removed."""
    user = user_service.deactivate_user(user_id, actor_user_id=current_auth().user_id)
    return success_response({"userId": user.id}, message="User deactivated")


@users_bp.patch("/<user_id>/role")
@require_auth
@require_roles(UserRole.ADMIN)
def change_role_route(user_id: str):
    data = get_json_body()
    role = parse_enum(UserRole, data.get("role"), "role")

    user = user_service.change_role(user_id, role, actor_user_id=current_auth().user_id)
    return success_response(user.to_dict(), message="Role updated")


@users_bp.patch("/<user_id>/deactivate")
@require_auth
@require_roles(UserRole.ADMIN)
def change_status_route(user_id: str):
    """Set account status; defaults to INACTIVE when the body names none."""
    data = get_json_body()
    status = parse_enum(UserStatus, data.get("status") or UserStatus.INACTIVE.value, "status")

    user = user_service.change_status(user_id, status, actor_user_id=current_auth().user_id)
    return success_response(user.to_dict(), message="Status updated")


@users_bp.get("/<user_id>/orders")
@require_auth
@require_roles(UserRole.ADMIN, UserRole.CURATOR)
def list_user_orders_route(user_id: str):
    user = user_service.get_user(user_id)
    orders = order_service.list_user_orders(user.id)
    return success_response([order.to_dict(include_user=False) for order in orders])
