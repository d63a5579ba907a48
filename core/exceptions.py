import logging

from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class InvalidTransition(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Transición de estado no permitida.'
    default_code = 'invalid_transition'


class BillingIncomplete(APIException):
    """Raised on submit while wizard sections are still missing data."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'La cuenta de cobro está incompleta.'
    default_code = 'billing_incomplete'

    def __init__(self, missing=None, detail=None):
        super().__init__(detail=detail)
        self.missing = missing or []


def api_exception_handler(exc, context):
    resp = drf_exception_handler(exc, context)
    if resp is None:
        logger.exception('unhandled error in %s', context.get('view'))
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': str(exc)}}, status=500)
    # normalize response
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = resp.data
    code = exc.default_code if isinstance(exc, (InvalidTransition, BillingIncomplete)) else 'api_error'
    error = {'code': code, 'message': detail}
    if isinstance(exc, BillingIncomplete):
        error['missing'] = exc.missing
    if resp.status_code >= 500:
        logger.error('api error %s: %s', resp.status_code, detail)
    return Response({'ok': False, 'error': error}, status=resp.status_code)
