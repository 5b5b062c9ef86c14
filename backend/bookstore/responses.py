# Overview: Success envelope and pagination helpers shared by all routes.

from __future__ import annotations

import math
from dataclasses import dataclass

from flask import jsonify

from .errors import ApiError, ErrorCode


DEFAULT_PAGE = 1
DEFAULT_SIZE = 20
MAX_SIZE = 100


def success_response(payload=None, message: str = "ok", status: int = 200):
    return jsonify({
        "isSuccess": True,
        "message": message,
        "payload": payload,
    }), status


@dataclass(frozen=True)
class PageParams:
    page: int
    size: int
    sort: str | None = None

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.size


def _parse_positive(raw: str | None, default: int, name: str) -> int:
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ApiError(
            f"{name} must be an integer",
            details={"param": name},
            code=ErrorCode.INVALID_QUERY_PARAM,
            status=400,
        )
    return max(value, 1)


def get_page_params(args) -> PageParams:
    """Read page/size/sort from a query-args mapping. size is capped at MAX_SIZE."""
    page = _parse_positive(args.get("page"), DEFAULT_PAGE, "page")
    size = min(_parse_positive(args.get("size"), DEFAULT_SIZE, "size"), MAX_SIZE)
    return PageParams(page=page, size=size, sort=args.get("sort") or None)


def parse_sort(sort: str | None, allowed: dict, default: str, default_direction: str = "desc"):
    """
    Parse "field,direction" into (column, descending).

    `allowed` maps API field names to ORM columns; unknown fields are rejected.
    """
    field, direction = default, default_direction
    if sort:
        parts = sort.split(",", 1)
        field = parts[0].strip() or default
        direction = parts[1].strip().lower() if len(parts) > 1 and parts[1].strip() else "asc"
    if field not in allowed:
        raise ApiError(
            f"Cannot sort by {field}",
            details={"param": "sort", "allowed": sorted(allowed)},
            code=ErrorCode.INVALID_QUERY_PARAM,
            status=400,
        )
    return allowed[field], direction == "desc"


def build_page(content: list, total: int, params: PageParams) -> dict:
    return {
        "content": content,
        "page": params.page,
        "size": params.size,
        "totalElements": total,
        "totalPages": math.ceil(total / params.size) if params.size else 0,
        "sort": params.sort,
    }
