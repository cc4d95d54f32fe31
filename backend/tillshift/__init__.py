# backend/tillshift/__init__.py
import logging

from flask import Flask, request

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    threshold = app.config.get("VARIANCE_THRESHOLD_CENTS")
    if isinstance(threshold, bool) or not isinstance(threshold, int) or threshold < 0:
        raise ValueError(f"VARIANCE_THRESHOLD_CENTS must be a non-negative integer, got {threshold!r}")

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))
    logging.getLogger("tillshift.audit").setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # External collaborators
    from .services.order_source import init_order_source
    from .services.audit_service import init_audit_sink
    init_order_source(app)
    init_audit_sink(app)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.shifts import shifts_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(shifts_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = {
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:4173",
            "http://127.0.0.1:4173",
        }
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type, X-Operator-Id, X-Location-Id"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
