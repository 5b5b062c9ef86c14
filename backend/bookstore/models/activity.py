from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .common import new_id


class ActivityLog(db.Model):
    """
    Append-only record of user-facing actions (logins, orders, account changes).

    IMMUTABLE: never updated or deleted by the request path.
    """
    __tablename__ = "activity_logs"
    __table_args__ = (
        db.Index("ix_activity_logs_user_created", "user_id", "created_at"),
        db.Index("ix_activity_logs_action_created", "action", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)

    # Nullable for anonymous actions
    user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True, index=True)

    action = db.Column(db.String(64), nullable=False)
    ip_address = db.Column(db.String(45), nullable=True)

    # "metadata" is reserved on declarative models
    details = db.Column("metadata", db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "action": self.action,
            "ip": self.ip_address,
            "metadata": self.details,
            "createdAt": to_utc_z(self.created_at),
        }
