"""Service-layer errors and their HTTP mapping"""
from rest_framework import status
from rest_framework.response import Response


class ServiceError(Exception):
    """Base error raised by the service layer."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = 'service_error'

    def __init__(self, message, code=None, errors=None):
        self.message = message
        self.code = code or self.default_code
        self.errors = errors or []
        super().__init__(message)


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = 'not_found'


class InvalidOperationError(ServiceError):
    default_code = 'invalid_operation'


class ValidationFailedError(ServiceError):
    default_code = 'validation_error'


class UnauthorizedAccessError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_code = 'unauthorized'


def error_response(exc):
    """Build a DRF response for a service error"""
    payload = {'error': exc.message, 'code': exc.code}
    if exc.errors:
        payload['errors'] = exc.errors
    return Response(payload, status=exc.status_code)
