from __future__ import annotations
from flask import Flask, jsonify, request
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.exceptions import HTTPException


class ValidationError(ValueError):
    """Raised for bad input shape or range (model validators and request parsing)."""


class ConflictError(Exception):
    """Raised when a write would duplicate a record that must be unique."""


def register_error_handlers(app: Flask) -> None:
    from . import db

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError):
        db.session.rollback()
        return jsonify({"error": str(exc)}), 400

    @app.errorhandler(ConflictError)
    def handle_conflict(exc: ConflictError):
        db.session.rollback()
        return jsonify({"error": str(exc)}), 409

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(exc: IntegrityError):
        db.session.rollback()
        app.logger.info("Integrity violation on %s %s: %s", request.method, request.path, exc.orig)
        return jsonify({"error": "conflicts with an existing record"}), 409

    @app.errorhandler(SQLAlchemyError)
    def handle_db_error(exc: SQLAlchemyError):
        db.session.rollback()
        app.logger.exception("DB error on %s %s", request.method, request.path)
        return jsonify({"error": "database unavailable"}), 503

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        # Non-API paths keep werkzeug's default rendering
        if not request.path.startswith("/api"):
            return exc
        return jsonify({"error": exc.description}), exc.code
