# Overview: System health endpoint.

"""
Liveness and dependency health.

GET /health reports process uptime, deployment version and a database
probe. It answers 503 when the database is unreachable so load balancers
can pull the instance.
"""

import socket
import time

from flask import Blueprint, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


system_bp = Blueprint("system", __name__)

_STARTED_AT = time.monotonic()


def check_database_health() -> dict:
    """
    Check database connectivity with a trivial round trip.

    Returns dict with status and latency.
    """
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
        }
    except SQLAlchemyError:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: database reachable
    - 503: database unreachable
    """
    database_health = check_database_health()
    healthy = database_health["status"] == "healthy"

    response = {
        "status": "healthy" if healthy else "unhealthy",
        "version": current_app.config.get("APP_VERSION", "unknown"),
        "uptime": round(time.monotonic() - _STARTED_AT, 2),
        "timestamp": to_utc_z(utcnow()),
        "hostname": socket.gethostname(),
        "database": database_health,
    }
    return response, 200 if healthy else 503
