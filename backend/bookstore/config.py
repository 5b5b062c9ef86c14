# backend/bookstore/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/bookstore.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///bookstore.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Signed token settings. Access and refresh tokens never share a secret.
    JWT_ACCESS_SECRET = os.environ.get(
        "JWT_ACCESS_SECRET", "dev-access-secret-change-me-0123456789abcdef"
    )
    JWT_REFRESH_SECRET = os.environ.get(
        "JWT_REFRESH_SECRET", "dev-refresh-secret-change-me-0123456789abcdef"
    )
    JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")
    ACCESS_TOKEN_TTL = os.environ.get("ACCESS_TOKEN_TTL", "15m")
    REFRESH_TOKEN_TTL = os.environ.get("REFRESH_TOKEN_TTL", "7d")

    CORS_ORIGINS = os.environ.get(
        "CORS_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173",
    )
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    APP_VERSION = os.environ.get("APP_VERSION", "unknown")

    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))


MIN_SECRET_LENGTH = 32


def validate_config(config) -> None:
    """Refuse to boot with weak JWT secrets outside of tests."""
    if config.get("TESTING"):
        return
    for key in ("JWT_ACCESS_SECRET", "JWT_REFRESH_SECRET"):
        value = config.get(key) or ""
        if len(value) < MIN_SECRET_LENGTH:
            raise RuntimeError(f"{key} must be at least {MIN_SECRET_LENGTH} characters")
    if config.get("JWT_ACCESS_SECRET") == config.get("JWT_REFRESH_SECRET"):
        raise RuntimeError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must differ")
