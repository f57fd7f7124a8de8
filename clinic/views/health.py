import structlog
from django.db import DatabaseError, connections
from django.http import JsonResponse

from clinic.exceptions import error_body

logger = structlog.get_logger(__name__)


def healthz(request):
    try:
        with connections['default'].cursor() as c:
            c.execute('SELECT 1')
            row = c.fetchone()
        return JsonResponse({'success': True, 'data': {'db': bool(row and row[0] == 1)}})
    except DatabaseError:
        logger.exception('healthcheck_failed')
        return JsonResponse(error_body('unavailable', 'Database unavailable'), status=503)
