from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status
from django.core.exceptions import ValidationError
from django.db import IntegrityError
import logging
from django.conf import settings

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    400: 'Validation error',
    401: 'Authentication required',
    403: 'Permission denied',
    404: 'Resource not found',
    405: 'Method not allowed',
    500: 'Internal server error',
}


def _first_message(data):
    """Pull a human readable message out of DRF error data"""
    if isinstance(data, dict):
        if 'detail' in data:
            return str(data['detail'])
        for value in data.values():
            message = _first_message(value)
            if message:
                return message
    elif isinstance(data, (list, tuple)) and data:
        return _first_message(data[0])
    elif data:
        return str(data)
    return None


def custom_exception_handler(exc, context):
    """
    Wrap every API error as {'error', 'message', 'details', 'status_code'}
    """
    response = exception_handler(exc, context)

    if response is not None:
        message = STATUS_MESSAGES.get(response.status_code, 'An error occurred')
        if response.status_code in (400, 403, 404):
            message = _first_message(response.data) or message

        response.data = {
            'error': True,
            'message': message,
            'details': response.data,
            'status_code': response.status_code
        }

    # Handle Django ValidationError
    elif isinstance(exc, ValidationError):
        logger.error(f"Validation Error: {exc}")
        response = Response({
            'error': True,
            'message': exc.messages[0] if exc.messages else 'Validation error',
            'details': {'non_field_errors': exc.messages},
            'status_code': 400
        }, status=status.HTTP_400_BAD_REQUEST)

    # Handle Django IntegrityError
    elif isinstance(exc, IntegrityError):
        logger.error(f"Integrity Error: {exc}")
        response = Response({
            'error': True,
            'message': 'Database integrity error',
            'details': {'error': 'This operation violates database constraints'},
            'status_code': 400
        }, status=status.HTTP_400_BAD_REQUEST)

    # Handle unexpected errors
    else:
        logger.exception(f"Unexpected Error: {exc}")
        response = Response({
            'error': True,
            'message': 'An unexpected error occurred',
            'details': {'error': str(exc)} if settings.DEBUG else {},
            'status_code': 500
        }, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    return response
