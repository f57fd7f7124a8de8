"""
Domain errors and the unified API exception handler.

Services raise :class:`DomainError` subclasses for business-rule
violations; views let them propagate and DRF routes them through
:func:`api_exception_handler`, which renders every failure as
``{"success": false, "error": {"code", "message", "details"?}}``.
"""
from __future__ import annotations

import structlog
from django.conf import settings
from django.core.exceptions import ObjectDoesNotExist
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler, set_rollback

logger = structlog.get_logger(__name__)


class DomainError(Exception):
    """A business rule rejected the operation."""
    code = 'domain_error'
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, *, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidTransition(DomainError):
    code = 'invalid_transition'

    def __init__(self, entity: str, current: str, target: str):
        super().__init__(
            f'{entity} cannot move from {current} to {target}',
            details={'currentStatus': current, 'targetStatus': target},
        )
        self.current = current
        self.target = target


class AlreadyFinalized(DomainError):
    code = 'already_finalized'


class ClinicalGateError(DomainError):
    """Required clinical items are missing."""
    code = 'clinical_gate_failed'

    def __init__(self, message: str, missing_items: list[str]):
        super().__init__(message, details={'missingItems': list(missing_items)})
        self.missing_items = list(missing_items)


class Conflict(DomainError):
    code = 'conflict'


class SlotUnavailable(DomainError):
    """The requested time is outside the doctor's hours, in a break or blocked."""
    code = 'slot_unavailable'


_DRF_CODES = {
    status.HTTP_400_BAD_REQUEST: 'validation_error',
    status.HTTP_401_UNAUTHORIZED: 'unauthorized',
    status.HTTP_403_FORBIDDEN: 'forbidden',
    status.HTTP_404_NOT_FOUND: 'not_found',
    status.HTTP_405_METHOD_NOT_ALLOWED: 'method_not_allowed',
    status.HTTP_429_TOO_MANY_REQUESTS: 'throttled',
}


def error_body(code: str, message, details=None) -> dict:
    error = {'code': code, 'message': message}
    if details:
        error['details'] = details
    return {'success': False, 'error': error}


def api_exception_handler(exc, context):
    if isinstance(exc, DomainError):
        set_rollback()
        logger.info('domain_error', code=exc.code, message=exc.message)
        return Response(error_body(exc.code, exc.message, exc.details), status=exc.status_code)

    if isinstance(exc, ObjectDoesNotExist):
        exc = exceptions.NotFound(str(exc) or 'Not found')

    resp = drf_exception_handler(exc, context)
    if resp is None:
        view = context.get('view')
        logger.exception('unhandled_api_error', view=getattr(view, '__name__', type(view).__name__))
        set_rollback()
        message = str(exc) if settings.DEBUG else 'Internal server error'
        return Response(error_body('server_error', message), status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    code = _DRF_CODES.get(resp.status_code, 'api_error')
    if isinstance(exc, exceptions.ValidationError):
        return Response(error_body(code, 'Validation failed', resp.data), status=resp.status_code, headers=_headers(resp))
    detail = resp.data.get('detail') if isinstance(resp.data, dict) else resp.data
    return Response(error_body(code, str(detail) if detail is not None else code), status=resp.status_code, headers=_headers(resp))


def _headers(resp) -> dict:
    # Keep WWW-Authenticate / Retry-After set by DRF
    return {k: v for k, v in resp.items() if k in ('WWW-Authenticate', 'Retry-After')}
