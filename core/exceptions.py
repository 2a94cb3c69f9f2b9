"""
Core — Exception Handling

Domain exceptions raised by the service layer (stock ledger included) and
the DRF exception handler that renders them into the standard API error
envelope.

@file core/exceptions.py
"""

import logging

from django.core.exceptions import PermissionDenied, ValidationError
from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger('prodtrack')


# ---------------------------------------------------------------------------
# Domain exceptions
# ---------------------------------------------------------------------------

class BusinessRuleViolation(APIException):
    """Raised when a business rule is violated at the service layer."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Business rule violation.'
    default_code = 'BUSINESS_RULE_VIOLATION'


class ResourceNotFoundError(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Resource not found.'
    default_code = 'RESOURCE_NOT_FOUND'


# ---------------------------------------------------------------------------
# Stock ledger exceptions
# ---------------------------------------------------------------------------

class InvalidMovement(BusinessRuleViolation):
    """Movement input has a bad shape; rejected before any write."""
    default_detail = 'Invalid stock movement.'
    default_code = 'INVALID_MOVEMENT'


class EntityNotFound(ResourceNotFoundError):
    """The material or production batch that owns the stock does not exist."""
    default_detail = 'Stock entity not found.'
    default_code = 'ENTITY_NOT_FOUND'


class MovementNotFound(ResourceNotFoundError):
    default_detail = 'Stock movement not found.'
    default_code = 'MOVEMENT_NOT_FOUND'


class InsufficientStockError(APIException):
    """Raised when a deduction exceeds the available balance."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Insufficient stock for this operation.'
    default_code = 'INSUFFICIENT_STOCK'


class StockConflict(APIException):
    """Concurrent writers kept colliding on the same balance; retries exhausted."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The stock balance was modified concurrently. Please retry.'
    default_code = 'STOCK_CONFLICT'


class StockUnavailable(APIException):
    """Backend timeout or failure persisted across every attempt."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'Stock ledger temporarily unavailable. Please retry.'
    default_code = 'STOCK_UNAVAILABLE'


# ---------------------------------------------------------------------------
# Standard exception handler
# ---------------------------------------------------------------------------

def standard_exception_handler(exc, context):
    """
    Wraps every error response in the standard envelope:
      { "success": false, "errors": {...}, "code": "ERROR_CODE" }
    """
    if isinstance(exc, Http404):
        exc = ResourceNotFoundError()
    elif isinstance(exc, PermissionDenied):
        exc = APIException(detail='Permission denied.', code='PERMISSION_DENIED')
        exc.status_code = status.HTTP_403_FORBIDDEN
    elif isinstance(exc, ValidationError):
        data = {
            'success': False,
            'errors': exc.message_dict if hasattr(exc, 'message_dict') else {'detail': exc.messages},
            'code': 'VALIDATION_ERROR',
        }
        return Response(data, status=status.HTTP_400_BAD_REQUEST)

    response = exception_handler(exc, context)

    if response is None:
        logger.exception('Unhandled exception in view: %s', exc)
        return Response(
            {'success': False, 'errors': {'detail': ['Internal server error.']}, 'code': 'INTERNAL_ERROR'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    code = getattr(exc, 'default_code', 'ERROR')
    if isinstance(response.data, dict):
        errors = response.data
        # A 'code' key may also be a field error (Material.code); only a plain string is the error code.
        if isinstance(errors.get('code'), str):
            code = errors.pop('code')
    elif isinstance(response.data, list):
        errors = {'detail': response.data}
    else:
        errors = {'detail': [str(response.data)]}

    response.data = {
        'success': False,
        'errors': errors,
        'code': code,
    }
    return response
