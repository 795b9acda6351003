"""Application-wide error handlers."""
from __future__ import annotations

from flask import current_app, jsonify, request
from sqlalchemy.exc import IntegrityError, NoResultFound, SQLAlchemyError
from werkzeug.exceptions import HTTPException, MethodNotAllowed, NotFound

from .extensions import db


def register_error_handlers(app) -> None:
    @app.errorhandler(IntegrityError)
    def handle_integrity_error(exc: IntegrityError):
        db.session.rollback()
        current_app.logger.warning("Integrity error on %s %s: %s", request.method, request.path, exc.orig)
        return jsonify({"error": "duplicate_entry", "message": "A record with these values already exists"}), 400

    @app.errorhandler(NoResultFound)
    def handle_no_result(exc: NoResultFound):
        db.session.rollback()
        return jsonify({"error": "not_found", "message": "Record not found"}), 404

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(exc: SQLAlchemyError):
        db.session.rollback()
        current_app.logger.exception("Unhandled database error", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    @app.errorhandler(NotFound)
    def handle_not_found(exc: NotFound):
        return (
            jsonify({
                "error": "endpoint_not_found",
                "message": "Endpoint not found",
                "path": request.path,
                "method": request.method,
            }),
            404,
        )

    @app.errorhandler(MethodNotAllowed)
    def handle_method_not_allowed(exc: MethodNotAllowed):
        return jsonify({"error": "method_not_allowed", "message": str(exc.description)}), 405

    @app.errorhandler(HTTPException)
    def handle_http_exception(exc: HTTPException):
        return jsonify({"error": exc.name.lower().replace(" ", "_"), "message": exc.description}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        current_app.logger.exception("Unhandled error on %s %s", request.method, request.path, exc_info=exc)
        message = str(exc) if current_app.debug else "Something went wrong"
        return jsonify({"error": "internal_error", "message": message}), 500
