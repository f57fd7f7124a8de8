import uuid

import structlog

from .logging_config import bind_request_context

logger = structlog.get_logger(__name__)


class RequestContextMiddleware:
    """Tag every log line of a request with a request id and echo it back."""
    HEADER = 'HTTP_X_REQUEST_ID'

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request_id = (request.META.get(self.HEADER) or '').strip()[:64] or uuid.uuid4().hex
        request.request_id = request_id
        bind_request_context(request_id, request.method, request.path)
        response = self.get_response(request)
        response['X-Request-ID'] = request_id
        if response.status_code >= 500:
            logger.error('request_failed', status_code=response.status_code)
        structlog.contextvars.clear_contextvars()
        return response
