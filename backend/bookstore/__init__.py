# backend/bookstore/__init__.py
import logging
import time

from flask import Flask, g, request

from .config import Config, validate_config
from .extensions import db, migrate
from .errors import register_error_handlers



def _allowed_origins(app: Flask) -> set:
    raw = app.config.get("CORS_ORIGINS") or ""
    if isinstance(raw, (list, tuple, set)):
        return {origin.strip() for origin in raw if origin.strip()}
    return {origin.strip() for origin in raw.split(",") if origin.strip()}


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)
    validate_config(app.config)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    register_error_handlers(app)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.users import users_bp
    from .routes.orders import orders_bp
    from .routes.activity_logs import activity_logs_bp
    from .routes.stats import stats_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(activity_logs_bp)
    app.register_blueprint(stats_bp)

    allowed_origins = _allowed_origins(app)

    @app.before_request
    def start_timer():
        g.request_started = time.perf_counter()

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    @app.after_request
    def log_request(response):
        started = g.get("request_started")
        elapsed_ms = (time.perf_counter() - started) * 1000 if started is not None else 0.0
        app.logger.info("HTTP %s %s %s %.1fms", request.method, request.path, response.status_code, elapsed_ms)
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
