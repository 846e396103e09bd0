"""
Centralized error handlers for the Flask application.

Every response is JSON; floor errors carry their catalogue code and the
user-facing message, never the internal exception text.
"""

from http import HTTPStatus

from flask import Flask, jsonify
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from lounge_shared.errors import ERROR_CATALOG, FloorError
from lounge_shared.logging_config import get_logger
from lounge_shared.serializers import error_response
from lounge_shared.validation import ValidationError

logger = get_logger(__name__)


def register_error_handlers(app: Flask) -> None:
    """
    Register centralized error handlers for the Flask app.

    Args:
        app: Flask application instance
    """

    @app.errorhandler(FloorError)
    def handle_floor_error(e: FloorError):
        status = e.http_status
        if status >= HTTPStatus.INTERNAL_SERVER_ERROR:
            logger.error(f"{e.code}: {e}", exc_info=True)
        else:
            logger.warning(f"{e.code}: {e}")
        return jsonify(error_response(e.user_message, code=e.code)), status

    @app.errorhandler(ValidationError)
    def handle_validation_error(e: ValidationError):
        """Handle custom validation errors."""
        logger.warning(f"Validation error: {e}")
        return jsonify(error_response(str(e))), HTTPStatus.BAD_REQUEST

    @app.errorhandler(PydanticValidationError)
    def handle_pydantic_validation_error(e: PydanticValidationError):
        """Handle Pydantic validation errors."""
        logger.warning(f"Pydantic validation error: {e}")
        details = [
            {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        return jsonify(error_response("Invalid data", {"details": details})), HTTPStatus.BAD_REQUEST

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(e: SQLAlchemyError):
        """Handle database errors that escaped the store."""
        logger.error(f"Database error: {e}", exc_info=True)
        return jsonify(
            error_response(ERROR_CATALOG["FLOOR_502"]["user_message"], code="FLOOR_502")
        ), HTTPStatus.BAD_GATEWAY

    @app.errorhandler(HTTPException)
    def handle_http_exception(e: HTTPException):
        """Handle HTTP exceptions from Werkzeug."""
        logger.warning(f"HTTP exception {e.code}: {e.description}")
        return jsonify(error_response(e.description or str(e))), e.code

    @app.errorhandler(Exception)
    def handle_generic_exception(e: Exception):
        """Handle any unhandled exceptions."""
        logger.error(f"Unhandled exception: {e}", exc_info=True)
        return jsonify(error_response("Internal server error")), HTTPStatus.INTERNAL_SERVER_ERROR
