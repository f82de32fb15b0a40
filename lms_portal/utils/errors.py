import logging

from flask import jsonify, request
from flask_wtf.csrf import CSRFError
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from lms_portal.models import db

logger = logging.getLogger(__name__)


class ApiError(Exception):
    status_code = 500
    kind = "ServerError"

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        body = {"error": self.kind, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(ApiError):
    status_code = 400
    kind = "ValidationError"


class AuthError(ApiError):
    status_code = 401
    kind = "AuthError"


class ForbiddenError(ApiError):
    status_code = 403
    kind = "ForbiddenError"


class NotFoundError(ApiError):
    status_code = 404
    kind = "NotFoundError"


class ConflictError(ApiError):
    status_code = 409
    kind = "ConflictError"


def get_or_404(model, object_id, label=None):
    instance = db.session.get(model, object_id)
    if instance is None:
        raise NotFoundError(f"{label or model.__name__} not found")
    return instance


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(error):
        db.session.rollback()
        logger.warning(
            f"{request.method} {request.path} -> {error.status_code} {error.kind}: {error.message}"
        )
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(CSRFError)
    def handle_csrf_error(error):
        logger.warning(f"CSRF rejected for {request.method} {request.path}")
        return handle_api_error(ValidationError(error.description))

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(error):
        db.session.rollback()
        logger.warning(f"Integrity error on {request.path}: {error.orig}")
        return handle_api_error(ConflictError("Record conflicts with existing data"))

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        if not request.path.startswith("/api/"):
            return error
        body = {"error": error.name.replace(" ", ""), "message": error.description}
        return jsonify(body), error.code

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        db.session.rollback()
        logger.exception(f"Unhandled error on {request.method} {request.path}")
        return jsonify({"error": "ServerError", "message": "Internal server error"}), 500
