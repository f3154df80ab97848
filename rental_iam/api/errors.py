"""Error handlers for the application."""
from flask import jsonify
from werkzeug.exceptions import HTTPException

from rental_iam.core.errors import IdentityError


def register_error_handlers(app):
    """Register error handlers with the Flask app."""

    @app.errorhandler(IdentityError)
    def handle_identity_error(error: IdentityError):
        """Render identity errors with their own status and upstream payload."""
        if error.status >= 500:
            app.logger.error(f"Identity provider failure: {error} (status={error.status})")
        return jsonify(error.to_dict()), error.status

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException):
        """Render werkzeug HTTP errors (404, 405, ...) as JSON."""
        return jsonify({"status": error.code, "error": error.name, "detail": error.description}), error.code

    @app.errorhandler(Exception)
    def handle_exception(error):
        """Handle uncaught exceptions."""
        app.logger.error(f"Unhandled exception: {error}", exc_info=True)
        return jsonify({"status": 500, "error": "Internal Server Error", "detail": "An unexpected error occurred"}), 500
