# backend/duka/__init__.py
import logging
from typing import Mapping

from flask import Flask, request

from .config import Config
from .extensions import db, migrate



def create_app(overrides: Mapping | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    logging.getLogger(__name__).setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Record store and per-cashier sessions live for the app's lifetime
    from .decorators import SESSIONS_KEY, STORE_KEY
    from .services.record_store import SqlRecordStore
    from .services.session_context import SessionRegistry

    app.extensions[STORE_KEY] = SqlRecordStore(attempts=app.config["STORE_RETRY_ATTEMPTS"])
    app.extensions[SESSIONS_KEY] = SessionRegistry(app.config["PRIVILEGED_ROLES"])

    # Register blueprints
    from .routes.system import system_bp
    from .routes.pos import pos_bp
    from .routes.registers import registers_bp
    from .routes.customers import customers_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(pos_bp)
    app.register_blueprint(registers_bp)
    app.register_blueprint(customers_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = {
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        }
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = (
                "Content-Type, X-Cashier-Id, X-Location-Id, X-Cashier-Role, X-Cashier-Name"
            )
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
