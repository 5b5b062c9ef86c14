from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Type, TypeVar

from flask import request

from .errors import ValidationFailedError


# Maximum money value that fits Numeric(12, 2)
MAX_MONEY = Decimal("9999999999.99")

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

E = TypeVar("E", bound=Enum)


def get_json_body() -> dict:
    """Return the JSON object body or fail with VALIDATION_FAILED."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationFailedError("Request body must be a JSON object")
    return data


def require_string(
    data: dict,
    field: str,
    *,
    min_length: int = 1,
    max_length: int | None = None,
    required: bool = True,
) -> str | None:
    value = data.get(field)
    if value is None:
        if required:
            raise ValidationFailedError(f"{field} is required", details={"field": field})
        return None
    if not isinstance(value, str):
        raise ValidationFailedError(f"{field} must be a string", details={"field": field})
    value = value.strip()
    if len(value) < min_length:
        raise ValidationFailedError(
            f"{field} must be at least {min_length} characters", details={"field": field}
        )
    if max_length is not None and len(value) > max_length:
        raise ValidationFailedError(
            f"{field} must be at most {max_length} characters", details={"field": field}
        )
    return value


def require_email(data: dict, field: str = "email", *, required: bool = True) -> str | None:
    value = require_string(data, field, required=required, max_length=255)
    if value is None:
        return None
    if not _EMAIL_RE.match(value):
        raise ValidationFailedError(f"{field} must be a valid email", details={"field": field})
    return value.lower()


def require_int(data: dict, field: str, *, minimum: int | None = None) -> int:
    value = data.get(field)
    # bool is a subclass of int
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationFailedError(f"{field} must be an integer", details={"field": field})
    if minimum is not None and value < minimum:
        raise ValidationFailedError(f"{field} must be >= {minimum}", details={"field": field})
    return value


def parse_money(value: Any, field: str, *, default: str = "0") -> Decimal:
    """
    Parse a money amount sent as a decimal string (or int).

    Floats are rejected: they cannot carry exact cents.
    """
    if value is None:
        value = default
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationFailedError(f"{field} must be a decimal string", details={"field": field})
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationFailedError(f"{field} must be a decimal string", details={"field": field})
    if not amount.is_finite():
        raise ValidationFailedError(f"{field} must be a finite amount", details={"field": field})
    if amount < 0:
        raise ValidationFailedError(f"{field} must not be negative", details={"field": field})
    if amount > MAX_MONEY:
        raise ValidationFailedError(f"{field} exceeds maximum amount", details={"field": field})
    if amount != amount.quantize(Decimal("0.01")):
        raise ValidationFailedError(f"{field} must have at most 2 decimal places", details={"field": field})
    return amount


def money_to_str(value: Decimal | None) -> str | None:
    """Decimal -> canonical string without trailing zeros ("20.00" -> "20")."""
    if value is None:
        return None
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    if value == 0:
        return "0"
    return format(value.normalize(), "f")


def parse_enum(enum_cls: Type[E], value: Any, field: str, *, required: bool = True) -> E | None:
    """Reject unknown enum values at the boundary."""
    if value is None:
        if required:
            raise ValidationFailedError(f"{field} is required", details={"field": field})
        return None
    try:
        return enum_cls(value)
    except ValueError:
        allowed = [member.value for member in enum_cls]
        raise ValidationFailedError(
            f"{field} must be one of: {', '.join(allowed)}",
            details={"field": field, "allowed": allowed},
        )
