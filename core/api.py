"""
Shared API helpers
Maps scheduling errors to HTTP responses and provides staff permissions
"""
import logging

from rest_framework import status
from rest_framework.permissions import BasePermission
from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.exceptions import ErrorKind, SchedulingError

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_STATE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
}


def error_response(exc):  # Build the error body for a SchedulingError
    return Response(
        {'success': False, 'error': exc.to_dict()},
        status=ERROR_STATUS.get(exc.kind, status.HTTP_400_BAD_REQUEST),
    )


def validation_error_response(errors):  # Serializer errors in the same envelope
    return Response(
        {
            'success': False,
            'error': {
                'code': 'INVALID_DATA',
                'kind': ErrorKind.INVALID_INPUT.value,
                'message': 'Invalid request data',
                'fields': errors,
            },
        },
        status=status.HTTP_400_BAD_REQUEST,
    )


def api_exception_handler(exc, context):
    """DRF exception handler that also understands SchedulingError.

    Views catch engine errors themselves; this covers anything that escapes.
    """
    if isinstance(exc, SchedulingError):
        logger.warning(f"Unhandled scheduling error in {context.get('view')}: {exc.code}")
        return error_response(exc)
    return exception_handler(exc, context)


class IsOperator(BasePermission):  # Staff, professionals and admins
    message = 'Only staff members can perform this action'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.is_operator)
