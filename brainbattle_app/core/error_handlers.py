"""
Error Handlers for Brain Battle

Provides:
- The BrainBattleError hierarchy used by the engine and the scoring backend
- The JSON error envelope ``{success: false, message, code, details}``
- Flask error handlers for API paths
"""

from typing import Any, Dict, Optional

from flask import current_app, jsonify, request


class BrainBattleError(Exception):
    """Base exception; subclasses pin ``code`` and ``status_code``."""

    code = 'UNKNOWN_ERROR'
    status_code = 500
    default_message = 'Unexpected error'

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {
            'success': False,
            'message': self.message,
            'code': self.code,
            'details': self.details
        }


class NotFoundError(BrainBattleError):
    code = 'NOT_FOUND'
    status_code = 404
    default_message = 'Resource not found'

    def __init__(self, message: str = None, resource: str = None):
        super().__init__(message, {'resource': resource} if resource else None)


class ValidationError(BrainBattleError):
    """Rejected input, e.g. an empty or malformed question list. ``errors`` is keyed by field or question index."""

    code = 'VALIDATION_ERROR'
    status_code = 400
    default_message = 'Validation failed'

    def __init__(self, message: str = None, errors: Dict[str, Any] = None):
        self.errors = errors or {}
        super().__init__(message, {'errors': self.errors} if self.errors else None)


class AuthorizationError(BrainBattleError):
    code = 'FORBIDDEN'
    status_code = 403
    default_message = 'Access denied'


class SubmissionError(BrainBattleError):
    """The scoring backend was unreachable or refused a result. ``upstream_status`` is None for transport failures."""

    code = 'SUBMISSION_FAILED'
    status_code = 502
    default_message = 'Result submission failed'

    def __init__(self, message: str = None, status: int = None):
        self.upstream_status = status
        super().__init__(message, {'upstream_status': status} if status else None)


class SessionIdentityMismatch(BrainBattleError):
    """A resumed session is not the one bound to the route or storage."""

    code = 'SESSION_MISMATCH'
    status_code = 409
    default_message = 'Session identity mismatch'

    def __init__(self, expected: str = None, actual: str = None):
        super().__init__(None, {'expected': expected, 'actual': actual})


def error_response(message: str, code: str = 'ERROR', status_code: int = 400, details: Dict = None) -> tuple:
    """JSON error envelope as a Flask response tuple."""
    body = {'success': False, 'message': message, 'code': code}
    if details:
        body['details'] = details
    return jsonify(body), status_code


def success_response(data: Any = None, message: str = None) -> dict:
    body = {'success': True}
    if data is not None:
        body['data'] = data
    if message:
        body['message'] = message
    return body


def register_error_handlers(app):
    """Answer BrainBattleError everywhere, and 404/405/500 on /api/ paths, with the JSON envelope."""

    def _is_api_request() -> bool:
        return request.path.startswith('/api/')

    @app.errorhandler(BrainBattleError)
    def handle_brainbattle_error(error):
        log = current_app.logger.error if error.status_code >= 500 else current_app.logger.warning
        log(f"{request.method} {request.path} -> {error.code}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def handle_not_found(error):
        if _is_api_request():
            return error_response('Endpoint not found', 'NOT_FOUND', 404)
        return error

    @app.errorhandler(405)
    def handle_method_not_allowed(error):
        if _is_api_request():
            return error_response('Method not allowed', 'METHOD_NOT_ALLOWED', 405)
        return error

    @app.errorhandler(500)
    def handle_internal_error(error):
        current_app.logger.exception('Internal server error')
        if _is_api_request():
            return error_response('Internal server error', 'SERVER_ERROR', 500)
        return error
