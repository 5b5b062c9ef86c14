# Overview: Service-layer operations for the activity log; append and paginated read.

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import ActivityLog
from ..responses import PageParams, build_page, parse_sort


def record_activity(
    user_id: str | None,
    action: str,
    metadata: dict | None = None,
    ip_address: str | None = None,
) -> ActivityLog:
    """Append one activity row and commit it."""
    entry = ActivityLog(
        user_id=user_id,
        action=action,
        details=metadata,
        ip_address=ip_address,
    )
    db.session.add(entry)
    db.session.commit()
    return entry


def record_activity_safely(
    user_id: str | None,
    action: str,
    metadata: dict | None = None,
    ip_address: str | None = None,
) -> ActivityLog | None:
    """
    Post-commit variant of record_activity.

    The business write it describes is already durable; a failed audit
    insert is rolled back and logged, never re-raised.
    """
    try:
        return record_activity(user_id, action, metadata, ip_address)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.warning(
            "Failed to record activity %s for user %s", action, user_id, exc_info=True
        )
        return None


SORTABLE_FIELDS = {
    "createdAt": ActivityLog.created_at,
    "action": ActivityLog.action,
}


def list_activity_logs(
    params: PageParams,
    user_id: str | None = None,
    action: str | None = None,
) -> dict:
    query = db.session.query(ActivityLog)
    if user_id:
        query = query.filter(ActivityLog.user_id == user_id)
    if action:
        query = query.filter(ActivityLog.action == action)

    column, descending = parse_sort(params.sort, SORTABLE_FIELDS, default="createdAt")
    total = query.count()
    rows = (
        query.order_by(column.desc() if descending else column.asc(), ActivityLog.id)
        .offset(params.offset)
        .limit(params.size)
        .all()
    )
    return build_page([row.to_dict() for row in rows], total, params)
