# backend/manuerp/__init__.py
from flask import Flask, request, jsonify
from sqlalchemy.orm.exc import StaleDataError
from werkzeug.exceptions import HTTPException

from .config import Config
from .errors import ApiError, ConflictError
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config["LOG_LEVEL"])

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.materials import materials_bp
    from .routes.stock_ledger import stock_ledger_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(materials_bp)
    app.register_blueprint(stock_ledger_bp)

    register_error_handlers(app)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = set(app.config["CORS_ORIGINS"])
        if app.config.get("CLIENT_URL"):
            allowed_origins.add(app.config["CLIENT_URL"])
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type, X-Requested-With"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app


def register_error_handlers(app: Flask) -> None:
    """
    Every error leaves as JSON with a human-readable "message".

    ApiError subclasses carry their own status. A write that still loses an
    optimistic-lock race after retries is a 409. Unexpected exceptions are
    logged with their traceback and answered with a generic 500.
    """
    @app.errorhandler(ApiError)
    def handle_api_error(error: ApiError):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(StaleDataError)
    def handle_stale_write(error: StaleDataError):
        db.session.rollback()
        app.logger.warning("Concurrent update lost on %s %s", request.method, request.path)
        conflict = ConflictError("Record was modified concurrently. Please retry.")
        return jsonify(conflict.to_dict()), conflict.status_code

    @app.errorhandler(404)
    def handle_not_found(error):
        return jsonify({"error": "NotFound", "message": f"Route {request.path} not found"}), 404

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        return jsonify({"error": error.name, "message": error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        db.session.rollback()
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"error": "ServerError", "message": "Server error. Please try again."}), 500
