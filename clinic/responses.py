from rest_framework import status as http_status
from rest_framework.response import Response


def ok(data=None, status: int = http_status.HTTP_200_OK, **extra) -> Response:
    """Success envelope: ``{"success": true, "data": ...}`` plus optional siblings."""
    payload = {'success': True, 'data': data}
    payload.update(extra)
    return Response(payload, status=status)


def created(data=None, **extra) -> Response:
    return ok(data, status=http_status.HTTP_201_CREATED, **extra)


def paginated(qs, page: int, page_size: int, formatter) -> Response:
    total = qs.count()
    start = (page - 1) * page_size
    items = [formatter(obj) for obj in qs[start:start + page_size]]
    return ok(items, pagination={'total': total, 'page': page, 'pageSize': page_size})
