import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger('backend.core')


class InventoryError(Exception):
    """Business rule violation; the message is shown to the user as-is"""


class InsufficientStockError(InventoryError):
    pass


class InvalidTransitionError(InventoryError):
    """Document is not in a status that allows the requested operation"""


def api_exception_handler(exc, context):
    """DRF exception handler: business errors become 400, unexpected errors are recorded and become 500"""
    response = exception_handler(exc, context)
    if response is not None:
        return response

    if isinstance(exc, InventoryError):
        return Response({'error': str(exc)}, status=status.HTTP_400_BAD_REQUEST)

    request = context.get('request')
    view = context.get('view')
    logger.error(f"Unhandled error in {view.__class__.__name__ if view else 'view'}: {str(exc)}", exc_info=exc)
    if request is not None:
        from backend.errorlogs.services import log_request_exception
        log_request_exception(request, exc)
    return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
