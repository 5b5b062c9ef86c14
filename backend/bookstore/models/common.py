from __future__ import annotations

import uuid
from enum import Enum


def new_id() -> str:
    return str(uuid.uuid4())


class UserRole(str, Enum):
    USER = "USER"
    CURATOR = "CURATOR"
    ADMIN = "ADMIN"


class UserStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FULFILLED = "FULFILLED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


def enum_column_type(db, enum_cls):
    """Closed string enum column: stored as VARCHAR, rejected on unknown values."""
    return db.Enum(
        enum_cls,
        native_enum=False,
        length=16,
        validate_strings=True,
        values_callable=lambda cls: [member.value for member in cls],
    )
