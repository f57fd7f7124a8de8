from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from clinic.permissions import IsAdminRole
from clinic.responses import paginated
from clinic.serializers.dashboards import AuditQuerySerializer
from clinic.services import dashboards


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def audit_trail(request):
    q = AuditQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    qs = dashboards.audit_events(object_type=vd.get('objectType'), object_id=vd.get('objectId'),
                                 action=vd.get('action'), user_id=vd.get('userId'))
    return paginated(qs, vd['page'], vd['pageSize'], dashboards.format_audit_event)
