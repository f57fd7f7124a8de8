from typing import Optional, Any, Dict

import structlog
from django.contrib.auth import get_user_model
from django.db import DatabaseError, transaction

from clinic.models import AuditEvent

User = get_user_model()
logger = structlog.get_logger(__name__)

# Action vocabulary used across services
CREATE = 'CREATE'
UPDATE = 'UPDATE'
VIEW = 'VIEW'
LOGIN = 'LOGIN'
LOGIN_FAILED = 'LOGIN_FAILED'
LOGOUT = 'LOGOUT'
FINALIZE = 'FINALIZE'
CASE_TRANSITION = 'CASE_TRANSITION'
CASE_TRANSITION_BLOCKED = 'CASE_TRANSITION_BLOCKED'
CONSENT_SIGNED = 'CONSENT_SIGNED'


def _client_meta(request) -> Dict[str, Any]:
    if request is None:
        return {}
    meta = getattr(request, 'META', {})
    forwarded = (meta.get('HTTP_X_FORWARDED_FOR') or '').split(',')[0].strip()
    return {
        'ip_address': forwarded or meta.get('REMOTE_ADDR') or None,
        'user_agent': (meta.get('HTTP_USER_AGENT') or '')[:255],
    }


def log_action(*, user: Optional[User], action: str, object_type: Optional[str] = None,
               object_id: Any = None, detail: Optional[Dict[str, Any]] = None,
               request=None) -> Optional[AuditEvent]:
    """Append an audit event and return it, or ``None`` if the write failed.

    The insert runs in its own savepoint, so a failure here neither
    breaks the caller's surrounding transaction nor surfaces as an
    error to the client.
    """
    try:
        with transaction.atomic():
            return AuditEvent.objects.create(
                user=user if isinstance(user, User) and user.pk else None,
                action=action,
                object_type=object_type,
                object_id=str(object_id) if object_id is not None else None,
                detail=detail or {},
                **_client_meta(request),
            )
    except (DatabaseError, ValueError, TypeError):
        logger.warning('audit_write_failed', action=action, object_type=object_type,
                       object_id=object_id, exc_info=True)
        return None
