"""
Error taxonomy and request-boundary handlers
"""
import logging

import pydantic
from flask import jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class AeroPrepError(Exception):
    """Base class for failures reported to the caller"""
    status_code = 500
    message = 'Internal server error'

    def __init__(self, message=None, **details):
        super().__init__(message or self.message)
        if message:
            self.message = message
        self.details = details

    def to_dict(self):
        payload = {'success': False, 'message': self.message}
        payload.update(self.details)
        return payload


class ValidationError(AeroPrepError):
    status_code = 400
    message = 'Invalid input'


class AuthenticationError(AeroPrepError):
    status_code = 401
    message = 'Unauthorized'


class AuthorizationError(AeroPrepError):
    status_code = 403
    message = 'Forbidden'


class NotFoundError(AeroPrepError):
    status_code = 404
    message = 'Not found'


class ConflictError(AeroPrepError):
    status_code = 409
    message = 'Conflict'


class NoAnsweredQuestionsError(ValidationError):
    message = 'No answered questions to grade'


class InvalidCertificateFormatError(ValidationError):
    message = 'Invalid certificate number format'


class CertificateNotFoundError(NotFoundError):
    message = 'Certificate not found or invalid'


def register_error_handlers(app):
    """Turn engine errors into structured JSON failures"""

    @app.errorhandler(AeroPrepError)
    def handle_engine_error(error):
        if error.status_code >= 500:
            logger.error(f"{type(error).__name__}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(pydantic.ValidationError)
    def handle_schema_error(error):
        errors = [
            {'field': '.'.join(str(part) for part in item['loc']), 'message': item['msg']}
            for item in error.errors()
        ]
        return jsonify({'success': False, 'message': 'Invalid input', 'errors': errors}), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'success': False, 'message': error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        # Storage and driver errors never reach the client verbatim
        logger.exception(f"Unhandled error: {error}")
        return jsonify({'success': False, 'message': 'Internal server error'}), 500
