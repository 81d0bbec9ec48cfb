"""
app/__init__.py — Flask application factory for the bill-splitting ledger.

create_app(config_name) builds a fully wired app. Nothing runs at import
time, so tests can build their own app and alembic can read the metadata
without a server.

What the factory wires up:
  1. Config from config_by_name[config_name] (production is validated)
  2. Log level for the backend.app loggers (LOG_LEVEL)
  3. Extensions: db, ma and the ledger engine holder
  4. ledger_bp under /api/v1/ledger
  5. Error handlers that always answer with {"error": {code, message[, field]}}
  6. Decimal → string JSON encoding for every amount in a response
"""

from __future__ import annotations

import logging
import traceback
from decimal import Decimal

from flask import Flask, jsonify, request
from flask.json.provider import DefaultJSONProvider
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException

from backend.app.errors import AppError, ErrorCode
from backend.config import config_by_name, validate_production_config

_REGISTERED_CODES = frozenset(
    value for name, value in vars(ErrorCode).items() if not name.startswith("_")
)

# Shown instead of the bare code when a schema uses an ErrorCode as its message.
_CODE_MESSAGES = {
    ErrorCode.INVALID_AMOUNT: "Please enter a valid amount.",
}

_MISSING_PREFIX = "Missing data for required field"


# ── JSON provider ──────────────────────────────────────────────────────────

class DecimalJSONProvider(DefaultJSONProvider):
    """Ledger amounts leave the server as strings: Decimal("60") → "60"."""

    def default(self, o):
        if isinstance(o, Decimal):
            return str(o)
        return super().default(o)


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str = "development") -> Flask:
    """
    Args:
        config_name: "development", "testing" or "production". Unknown names
                     fall back to development.
    """
    app = Flask(__name__)
    app.json_provider_class = DecimalJSONProvider
    app.json = DecimalJSONProvider(app)

    app.config.from_object(config_by_name.get(config_name, config_by_name["development"]))
    if config_name == "production":
        validate_production_config(app)  # raises ValueError if misconfigured

    logging.getLogger("backend.app").setLevel(app.config["LOG_LEVEL"])

    # Imported here so that models can import `db` without a cycle.
    from backend.app.extensions import db, ledger, ma
    db.init_app(app)
    ma.init_app(app)
    ledger.init_app(app)

    # Registers ledger_records on db.metadata for create_all() and alembic.
    with app.app_context():
        from backend.app.models import ledger_record  # noqa: F401

    from backend.app.routes.ledger import ledger_bp
    app.register_blueprint(ledger_bp, url_prefix="/api/v1/ledger")

    _register_error_handlers(app)
    _register_cors(app)

    app.logger.debug("Ledger app created with %s config", config_name)
    return app


# ── Error handling ─────────────────────────────────────────────────────────

def _error_response(code: str, message: str, status: int, field: str | None = None):
    return jsonify(AppError(code, message, status, field).to_dict()), status


def _first_validation_error(messages) -> tuple[str | None, str]:
    """
    Picks the single (field, message) pair reported to the client.

    marshmallow nests messages as {"field": ["msg", ...]}; schema-level
    errors arrive under "_schema" and are reported without a field.
    """
    if isinstance(messages, dict) and messages:
        field, errors = next(iter(messages.items()))
        if isinstance(errors, list):
            message = str(errors[0]) if errors else "Invalid value."
        else:
            message = str(errors)
        return (None if field == "_schema" else field), message

    if isinstance(messages, list) and messages:
        return None, str(messages[0])

    return None, "Invalid input."


def _register_error_handlers(app: Flask) -> None:
    """
    AppError        → its own code and status (engine rejections)
    ValidationError → 400 MISSING_FIELD / INVALID_FIELD / INVALID_AMOUNT
    HTTPException   → the werkzeug status, code derived from its name
    Exception       → 500 INTERNAL_ERROR; the traceback is logged, never returned
    """

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        field, message = _first_validation_error(error.messages)

        if message in _REGISTERED_CODES:
            code, message = message, _CODE_MESSAGES.get(message, "Invalid input.")
        elif message.startswith(_MISSING_PREFIX):
            code = ErrorCode.MISSING_FIELD
        else:
            code = ErrorCode.INVALID_FIELD

        return _error_response(code, message, 400, field)

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        # 404 for unknown paths and non-integer transaction indexes, 405, ...
        code = error.name.upper().replace(" ", "_")
        return _error_response(code, error.description, error.code)

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        app.logger.error(
            "Unhandled exception on %s %s: %s\n%s",
            request.method,
            request.path,
            error,
            traceback.format_exc(),
        )
        return _error_response(
            ErrorCode.INTERNAL_ERROR,
            "An unexpected error occurred. Please try again later.",
            500,
        )


# ── CORS ───────────────────────────────────────────────────────────────────

def _register_cors(app: Flask) -> None:
    """
    Lets a ledger page served from another local port call the API.
    Only active when DEBUG or TESTING is set.
    """

    @app.after_request
    def add_cors_headers(response):
        if not (app.config.get("DEBUG") or app.config.get("TESTING")):
            return response

        response.headers["Access-Control-Allow-Origin"] = request.headers.get("Origin") or "*"
        response.headers["Vary"] = "Origin"
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, DELETE, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        return response
