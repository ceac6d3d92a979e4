"""
Exception taxonomy and the DRF exception handler.

Authorization failures are rendered with a ``redirect_to`` hint and never
expose the internal deny reason. Unexpected errors are rendered as a
generic 500 so no internal detail leaks to callers.
"""
import logging
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status

logger = logging.getLogger(__name__)


class LedgerlyException(Exception):
    """Base exception for Ledgerly-specific errors."""

    status_code = 400
    code = 'ERROR'

    def __init__(self, message, details=None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class UnauthenticatedError(LedgerlyException):
    """Raised when there is no external identity session."""
    status_code = 401
    code = 'UNAUTHENTICATED'

    def __init__(self, message='Authentication required', details=None, redirect_to=None):
        super().__init__(message, details)
        self.redirect_to = redirect_to


class AccessDeniedError(LedgerlyException):
    """
    Raised when a module or capability is not granted.

    ``reason`` is kept for logging only and is not rendered.
    """
    status_code = 403
    code = 'FORBIDDEN'

    def __init__(self, message='You do not have access to this resource',
                 reason=None, redirect_to=None, details=None):
        super().__init__(message, details)
        self.reason = reason
        self.redirect_to = redirect_to


class NotFoundError(LedgerlyException):
    """Raised when a tenant, member or order lookup misses."""
    status_code = 404
    code = 'NOT_FOUND'


class AuthenticityError(LedgerlyException):
    """Raised when a webhook signature is missing or does not verify."""
    status_code = 401
    code = 'INVALID_SIGNATURE'


class StorageError(LedgerlyException):
    """Raised when the persistence layer fails on a path that must not swallow it."""
    status_code = 500
    code = 'STORAGE_ERROR'


class ValidationError(LedgerlyException):
    """Raised when input validation fails."""
    status_code = 400
    code = 'VALIDATION_ERROR'


def _render_ledgerly_exception(exc, request_id):
    if exc.status_code >= 500:
        message = 'An unexpected error occurred'
    else:
        message = exc.message

    error = {
        'code': exc.code,
        'message': message,
    }
    redirect_to = getattr(exc, 'redirect_to', None)
    if redirect_to:
        error['redirect_to'] = redirect_to
    if exc.details and exc.status_code < 500:
        error['details'] = exc.details

    return Response(
        {'error': error, 'request_id': request_id},
        status=exc.status_code
    )


def custom_exception_handler(exc, context):
    """
    Custom exception handler that logs errors and returns consistent format.
    """
    request = context.get('request')
    request_id = getattr(request, 'request_id', None) if request else None

    if isinstance(exc, LedgerlyException):
        log = logger.error if exc.status_code >= 500 else logger.info
        log(
            f"API exception: {exc.__class__.__name__}",
            extra={
                'exception': str(exc),
                'request_id': request_id,
                'path': request.path if request else None,
                'method': request.method if request else None,
            },
            exc_info=exc.status_code >= 500
        )
        return _render_ledgerly_exception(exc, request_id)

    # Call DRF's default exception handler first
    response = exception_handler(exc, context)

    if response is None:
        logger.error(
            f"Unhandled API exception: {exc.__class__.__name__}",
            extra={
                'exception': str(exc),
                'request_id': request_id,
                'path': request.path if request else None,
                'method': request.method if request else None,
            },
            exc_info=True
        )
        return Response(
            {
                'error': {
                    'code': 'INTERNAL_ERROR',
                    'message': 'An unexpected error occurred',
                },
                'request_id': request_id,
            },
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    if request_id and isinstance(response.data, dict):
        response.data['request_id'] = request_id

    return response
