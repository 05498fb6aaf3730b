from flask import jsonify
from sqlalchemy.exc import SQLAlchemyError

from mirin.extensions import db


class ServiceError(Exception):
    """Base class for failures surfaced to the API caller."""
    status_code = 500
    code = 'INTERNAL_SERVER_ERROR'

    def __init__(self, message=None, errors=None):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__
        self.errors = errors

    def to_dict(self):
        payload = {'error': self.code, 'message': self.message}
        if self.errors:
            payload['errors'] = self.errors
        return payload


class BadRequest(ServiceError):
    status_code = 400
    code = 'BAD_REQUEST'


class InvalidState(BadRequest):
    code = 'INVALID_STATE'


class Unauthorized(ServiceError):
    status_code = 401
    code = 'UNAUTHORIZED'


class Forbidden(ServiceError):
    status_code = 403
    code = 'FORBIDDEN'


class NotFound(ServiceError):
    status_code = 404
    code = 'NOT_FOUND'


class Conflict(ServiceError):
    status_code = 409
    code = 'CONFLICT'


def register_error_handlers(app):
    @app.errorhandler(ServiceError)
    def handle_service_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_store_error(error):
        # Store outages are reported as such, never as empty results
        db.session.rollback()
        app.logger.error(f"Database error: {error}")
        return jsonify({'error': 'STORE_UNAVAILABLE', 'message': 'Database is not available'}), 503

    @app.errorhandler(404)
    def handle_not_found(error):
        return jsonify({'error': 'NOT_FOUND', 'message': 'Resource not found'}), 404

    @app.errorhandler(405)
    def handle_method_not_allowed(error):
        return jsonify({'error': 'METHOD_NOT_ALLOWED', 'message': 'Method not allowed'}), 405

    @app.errorhandler(413)
    def handle_too_large(error):
        return jsonify({'error': 'BAD_REQUEST', 'message': 'Upload too large'}), 413
