# Overview: Flask API routes for the activity log; staff-only paginated read.

from flask import Blueprint, request

from ..decorators import require_auth, require_roles
from ..models import UserRole
from ..responses import get_page_params, success_response
from ..services import activity_service


activity_logs_bp = Blueprint("activity_logs", __name__, url_prefix="/activity-logs")


@activity_logs_bp.get("")
@require_auth
@require_roles(UserRole.ADMIN, UserRole.CURATOR)
def list_activity_logs_route():
    params = get_page_params(request.args)
    page = activity_service.list_activity_logs(
        params,
        user_id=request.args.get("userId") or None,
        action=request.args.get("action") or None,
    )
    return success_response(page)
