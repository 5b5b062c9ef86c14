# Overview: Typed API errors and the app-wide handlers that render the shared error envelope.

"""
Error taxonomy for the bookstore API.

Every failure leaves the service as a subclass of ApiError carrying a
machine-readable code and an HTTP status. Handlers registered on the app
render all of them (plus unhandled database and framework errors) into one
envelope so clients branch on `code`, never on `message`:

    {timestamp, path, status, code, message, details?}
"""

from __future__ import annotations

from flask import current_app, jsonify, request
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .extensions import db
from .time_utils import utcnow, to_utc_z


class ErrorCode:
    BAD_REQUEST = "BAD_REQUEST"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    INVALID_QUERY_PARAM = "INVALID_QUERY_PARAM"
    UNAUTHORIZED = "UNAUTHORIZED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    FORBIDDEN = "FORBIDDEN"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    DUPLICATE_RESOURCE = "DUPLICATE_RESOURCE"
    STATE_CONFLICT = "STATE_CONFLICT"
    UNPROCESSABLE_ENTITY = "UNPROCESSABLE_ENTITY"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"


class ApiError(Exception):
    """Base for every error that maps onto the response envelope."""

    code = ErrorCode.BAD_REQUEST
    status = 400

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        *,
        code: str | None = None,
        status: int | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details
        if code is not None:
            self.code = code
        if status is not None:
            self.status = status


class BadRequestError(ApiError):
    code = ErrorCode.BAD_REQUEST
    status = 400


class ValidationFailedError(ApiError):
    """Malformed request input."""
    code = ErrorCode.VALIDATION_FAILED
    status = 422


class UnauthorizedError(ApiError):
    """Missing, invalid or expired access credential, or bad login credentials."""
    code = ErrorCode.UNAUTHORIZED
    status = 401


class TokenExpiredError(ApiError):
    """
    Refresh token invalid, revoked or expired.

    Kept apart from UnauthorizedError: clients answer this one with a full
    re-login instead of a refresh attempt.
    """
    code = ErrorCode.TOKEN_EXPIRED
    status = 401


class ForbiddenError(ApiError):
    code = ErrorCode.FORBIDDEN
    status = 403


class ResourceNotFoundError(ApiError):
    code = ErrorCode.RESOURCE_NOT_FOUND
    status = 404


class UserNotFoundError(ResourceNotFoundError):
    code = ErrorCode.USER_NOT_FOUND


class StateConflictError(ApiError):
    """Business rule violation: insufficient stock, order not cancellable."""
    code = ErrorCode.STATE_CONFLICT
    status = 409


class DuplicateResourceError(StateConflictError):
    code = ErrorCode.DUPLICATE_RESOURCE


def error_body(status: int, code: str, message: str, details: dict | None = None) -> dict:
    body = {
        "timestamp": to_utc_z(utcnow()),
        "path": request.path,
        "status": status,
        "code": code,
        "message": message,
    }
    if details is not None:
        body["details"] = details
    return body


def _render(status: int, code: str, message: str, details: dict | None = None):
    return jsonify(error_body(status, code, message, details)), status


# SQLSTATE codes; psycopg2 exposes them as pgcode, psycopg 3 as sqlstate
_FOREIGN_KEY_SQLSTATE = "23503"
_CHECK_SQLSTATE = "23514"


def classify_integrity_error(err: IntegrityError) -> tuple[str, str]:
    """
    Pick the envelope code for a constraint violation.

    Foreign-key and CHECK failures are state conflicts (a referenced row is
    gone, a guarded column would go out of range); anything else, in practice
    a unique index, is a duplicate.
    """
    orig = err.orig
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    text = str(orig).lower()

    if sqlstate == _FOREIGN_KEY_SQLSTATE or "foreign key" in text:
        return ErrorCode.STATE_CONFLICT, "Invalid reference"
    if sqlstate == _CHECK_SQLSTATE or "check constraint" in text:
        return ErrorCode.STATE_CONFLICT, "Constraint violated"
    return ErrorCode.DUPLICATE_RESOURCE, "Duplicate resource"


def register_error_handlers(app) -> None:
    """Map every failure onto the shared error envelope."""

    @app.errorhandler(ApiError)
    def handle_api_error(err: ApiError):
        if err.status >= 500:
            current_app.logger.exception(err.message)
        else:
            current_app.logger.info(
                "%s %s -> %s %s: %s", request.method, request.path, err.status, err.code, err.message
            )
        return _render(err.status, err.code, err.message, err.details)

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err: IntegrityError):
        db.session.rollback()
        current_app.logger.info("Integrity violation on %s %s: %s", request.method, request.path, err.orig)
        code, message = classify_integrity_error(err)
        return _render(409, code, message)

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(err: SQLAlchemyError):
        db.session.rollback()
        current_app.logger.exception("Database error")
        return _render(500, ErrorCode.DATABASE_ERROR, "Database error")

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        status = err.code or 500
        if status == 404:
            return _render(404, ErrorCode.RESOURCE_NOT_FOUND, "The requested resource could not be found")
        if status >= 500:
            return _render(status, ErrorCode.INTERNAL_SERVER_ERROR, err.description or "Unexpected error")
        return _render(status, ErrorCode.BAD_REQUEST, err.description or err.name)

    @app.errorhandler(Exception)
    def handle_unexpected(err: Exception):
        current_app.logger.exception("Unhandled error")
        return _render(500, ErrorCode.INTERNAL_SERVER_ERROR, "Internal server error")
