from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .common import UserRole, UserStatus, enum_column_type, new_id


class User(db.Model):
    """
    Customer and staff accounts.

    Email is unique and stored lower-cased. Accounts are never physically
    deleted: soft delete sets deleted_at and moves status to INACTIVE.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_role_status", "role", "status"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)

    email = db.Column(db.String(255), nullable=False, unique=True, index=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    name = db.Column(db.String(120), nullable=False)
    phone = db.Column(db.String(20), nullable=True)
    region = db.Column(db.String(120), nullable=True)
    birth_date = db.Column(db.DateTime(timezone=True), nullable=True)
    gender = db.Column(db.String(20), nullable=True)

    role = db.Column(enum_column_type(db, UserRole), nullable=False, default=UserRole.USER)
    status = db.Column(enum_column_type(db, UserStatus), nullable=False, default=UserStatus.ACTIVE)

    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now()
    )
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE and self.deleted_at is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "phone": self.phone,
            "region": self.region,
            "birthDate": to_utc_z(self.birth_date),
            "gender": self.gender,
            "role": self.role.value,
            "status": self.status.value,
            "lastLoginAt": to_utc_z(self.last_login_at),
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }

    def to_auth_dict(self) -> dict:
        """Compact identity block returned alongside issued tokens."""
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role.value,
            "status": self.status.value,
        }


class RefreshToken(db.Model):
    """
    One outstanding refresh grant.

    Usable for rotation only while revoked is False and expires_at is in the
    future. Rotation revokes the old row and inserts the new one in a single
    transaction. Revocation is terminal; rows stay behind as an audit trail.
    """
    __tablename__ = "refresh_tokens"
    __table_args__ = (
        db.Index("ix_refresh_tokens_user_revoked", "user_id", "revoked"),
        db.Index("ix_refresh_tokens_expires_at", "expires_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)

    # The signed token string itself; looked up verbatim on rotate/revoke
    token = db.Column(db.String(1024), nullable=False, unique=True)

    user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)

    revoked = db.Column(db.Boolean, nullable=False, default=False)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Client context
    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)

    user = db.relationship("User", backref=db.backref("refresh_tokens", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "createdAt": to_utc_z(self.created_at),
            "expiresAt": to_utc_z(self.expires_at),
            "revoked": self.revoked,
            "revokedAt": to_utc_z(self.revoked_at),
            "userAgent": self.user_agent,
            "ipAddress": self.ip_address,
        }
