# Overview: Flask API routes for admin statistics.

from flask import Blueprint

from ..decorators import require_auth, require_roles
from ..models import UserRole
from ..responses import success_response
from ..services import stats_service


stats_bp = Blueprint("stats", __name__, url_prefix="/stats")


@stats_bp.get("/overview")
@require_auth
@require_roles(UserRole.ADMIN)
def overview_route():
    return success_response(stats_service.get_overview())


@stats_bp.get("/top-books")
@require_auth
@require_roles(UserRole.ADMIN, UserRole.CURATOR)
def top_books_route():
    return success_response(stats_service.get_top_books())


@stats_bp.get("/daily-sales")
@require_auth
@require_roles(UserRole.ADMIN, UserRole.CURATOR)
def daily_sales_route():
    return success_response(stats_service.get_daily_sales())
