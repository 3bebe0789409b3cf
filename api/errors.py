from flask import jsonify, current_app
from werkzeug.exceptions import HTTPException
from marshmallow import ValidationError
import logging

from services.errors import ErrorKind, ServiceError

# The only place an error kind becomes an HTTP status
STATUS_BY_KIND = {
    ErrorKind.VALIDATION_ERROR: 400,
    ErrorKind.INVALID_REQUEST_BODY: 400,
    ErrorKind.USER_EXISTS: 409,
    ErrorKind.INVALID_CREDENTIALS: 401,
    ErrorKind.ACCOUNT_DEACTIVATED: 401,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.REFRESH_TOKEN_REQUIRED: 401,
    ErrorKind.INVALID_REFRESH_TOKEN: 401,
    ErrorKind.REFRESH_TOKEN_EXPIRED: 401,
    ErrorKind.USER_NOT_FOUND: 404,
    ErrorKind.INTERNAL_ERROR: 500,
}


# Marshmallow messages that mean "absent", as opposed to present-but-invalid
_PRESENCE_MESSAGES = {"Missing data for required field.", "Field may not be null.", "Must not be empty."}


def validation_message(messages) -> str:
    """One-line summary of a marshmallow error dict; the full dict goes in details."""
    if not isinstance(messages, dict) or not messages:
        return "Invalid input"
    names = sorted(str(name) for name in messages)
    only_absent = all(
        isinstance(errors, list) and set(errors) <= _PRESENCE_MESSAGES for errors in messages.values()
    )
    if only_absent and set(names) <= {"email", "password"}:
        return "Email and password are required"
    return "Invalid input: " + ", ".join(names)


def error_response(error: str, message: str, status: int, details: dict | None = None):
    payload = {"error": error, "message": message, "status": status}
    if details:
        payload["details"] = details
    return jsonify(payload), status


def register_error_handlers(app):
    @app.errorhandler(ServiceError)
    def handle_service_error(err: ServiceError):
        # Internal failures were already logged with their traceback by the service
        return error_response(err.kind.value, err.message, STATUS_BY_KIND[err.kind])

    # Marshmallow validation errors (missing or malformed fields)
    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        if current_app and current_app.debug:
            logging.debug("Validation failed: %s", err.messages)
        return error_response(
            ErrorKind.VALIDATION_ERROR.value, validation_message(err.messages), 400, details=err.messages
        )

    # 404 Not Found (unknown route)
    @app.errorhandler(404)
    def not_found(e):
        return error_response("NOT_FOUND", "Resource not found", 404)

    # Werkzeug HTTPExceptions map to their status codes
    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        return error_response(err.name.upper().replace(" ", "_"), err.description, err.code or 400)

    # 500 Internal Error (catch-all)
    @app.errorhandler(Exception)
    def internal_error(err: Exception):
        logging.exception("Unhandled exception", exc_info=err)
        # In dev, include exception details to speed up debugging
        details = None
        if current_app and current_app.debug:
            details = {"type": err.__class__.__name__, "message": str(err)}
        return error_response(ErrorKind.INTERNAL_ERROR.value, "Internal server error", 500, details=details)
