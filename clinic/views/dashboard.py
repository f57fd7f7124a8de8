"""
Dashboard read models.

The admin overview is cached (see ``DASHBOARD_CACHE_SECONDS``); trend
and intake counts are computed per request over a bounded window.
"""
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from clinic.models import User
from clinic.permissions import ADMIN, DOCTOR, FRONTDESK, IsAdminRole, allow_roles
from clinic.responses import ok
from clinic.serializers.dashboards import WindowQuerySerializer
from clinic.services import dashboards
from clinic.services.patients import doctor_for_user

AdminOrDoctor = allow_roles(ADMIN, DOCTOR)
AdminOrFrontDesk = allow_roles(ADMIN, FRONTDESK)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_dashboard(request):
    return ok(dashboards.admin_stats())


@api_view(['GET'])
@permission_classes([IsAuthenticated, AdminOrDoctor])
def appointment_trends(request):
    q = WindowQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    doctor = doctor_for_user(request.user) if request.user.role == User.ROLE_DOCTOR else None
    days = q.validated_data['days']
    return ok(dashboards.appointment_trends(days, doctor), meta={'days': days})


@api_view(['GET'])
@permission_classes([IsAuthenticated, AdminOrFrontDesk])
def intake_counts(request):
    q = WindowQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    return ok(dashboards.intake_counts(q.validated_data['days']))
