"""Service-level errors and their JSON translation."""

from __future__ import annotations

from typing import Any, Dict, Optional

from flask import Flask, jsonify
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .models import db
from .utils.logger import get_logger

logger = get_logger(__name__)


class ServiceError(Exception):
    """Raised when a service operation cannot be carried out."""

    status_code = 400
    default_code = "bad_request"

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        payload: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        if status_code is not None:
            self.status_code = status_code
        self.payload = payload or {}

    def to_dict(self) -> Dict[str, Any]:
        body = {"ok": False, "error": self.code, "message": self.message}
        body.update(self.payload)
        return body


class ValidationError(ServiceError):
    status_code = 400
    default_code = "validation_error"


class NotFoundError(ServiceError):
    status_code = 404
    default_code = "not_found"


class ConflictError(ServiceError):
    status_code = 409
    default_code = "conflict"


class AuthError(ServiceError):
    status_code = 401
    default_code = "unauthenticated"


class PermissionDeniedError(ServiceError):
    status_code = 403
    default_code = "forbidden"


class StateError(ServiceError):
    status_code = 400
    default_code = "invalid_state"


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ServiceError)
    def handle_service_error(exc: ServiceError):
        # Drop any in-memory changes made before the failure
        db.session.rollback()
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(exc: SQLAlchemyError):
        db.session.rollback()
        logger.exception("[DB] Request aborted by database error")
        return jsonify({"ok": False, "error": "database_error"}), 500

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        code = (exc.name or "error").lower().replace(" ", "_")
        return jsonify({"ok": False, "error": code, "message": exc.description}), exc.code


__all__ = [
    "AuthError",
    "ConflictError",
    "NotFoundError",
    "PermissionDeniedError",
    "ServiceError",
    "StateError",
    "ValidationError",
    "register_error_handlers",
]
