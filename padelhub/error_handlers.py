from flask import Blueprint, current_app, jsonify
from flask_wtf.csrf import CSRFError
from google.api_core import exceptions as google_exceptions

from .errors import (
    AppError,
    ConcurrencyConflictError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)

error_handlers_bp = Blueprint("error_handlers", __name__)


def _error_response(message, status_code, reason=None):
    """Build the JSON body shared by every error response."""
    data = {"reason": reason} if reason else None
    return jsonify({"success": False, "message": message, "data": data}), status_code


@error_handlers_bp.app_errorhandler(ValidationError)
def handle_validation_error(error):
    """Handles validation errors."""
    current_app.logger.warning(f"Validation Error: {error.message}")
    return _error_response(error.message, error.status_code)


@error_handlers_bp.app_errorhandler(PreconditionError)
def handle_precondition_error(error):
    """Handles rejected roster operations."""
    current_app.logger.warning(
        f"Precondition Error ({error.reason.value}): {error.message}"
    )
    return _error_response(error.message, error.status_code, error.reason.value)


@error_handlers_bp.app_errorhandler(ConcurrencyConflictError)
def handle_concurrency_conflict(error):
    """Handles roster operations that ran out of retries."""
    current_app.logger.warning(
        f"Concurrency Conflict: {error.operation} gave up after "
        f"{error.attempts} attempts"
    )
    return _error_response(error.message, error.status_code, "conflict")


@error_handlers_bp.app_errorhandler(NotFoundError)
def handle_not_found_error(error):
    """Handles not found errors."""
    current_app.logger.warning(f"Not Found Error: {error.message}")
    return _error_response(error.message, error.status_code)


@error_handlers_bp.app_errorhandler(AppError)
def handle_app_error(error):
    """Handles generic application errors."""
    current_app.logger.error(f"Application Error: {error.message}")
    return _error_response(error.message, error.status_code)


@error_handlers_bp.app_errorhandler(404)
def handle_404(e):
    """Handles generic 404 errors for routes that don't exist."""
    return _error_response("Page Not Found", 404)


@error_handlers_bp.app_errorhandler(500)
def handle_500(e):
    """Handles unexpected server errors."""
    current_app.logger.error(f"Internal Server Error: {e}")
    return _error_response("An unexpected error occurred.", 500)


@error_handlers_bp.app_errorhandler(google_exceptions.GoogleAPIError)
def handle_db_error(e):
    """Handles database errors."""
    current_app.logger.error(f"Database Error: {e}")
    # Avoid exposing raw database error details to the user
    return _error_response("A database error occurred. Please try again later.", 503)


@error_handlers_bp.app_errorhandler(CSRFError)
def handle_csrf_error(e):
    """
    Handles CSRF errors, which usually indicate a session timeout or invalid request.
    """
    current_app.logger.warning(f"CSRF Error: {e.description}")
    return _error_response(
        "Your session may have expired. Please try your action again.", 400
    )
