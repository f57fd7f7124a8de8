from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from clinic.permissions import ADMIN, DOCTOR, NURSE, THEATER_TECHNICIAN, IsAdminRole, IsStaff, allow_roles
from clinic.responses import created, ok
from clinic.serializers.theater import BookingSerializer, DayboardQuerySerializer, TransitionSerializer
from clinic.services import surgical_cases as case_service
from clinic.services import theater as theater_service

TheaterStaff = allow_roles(THEATER_TECHNICIAN, ADMIN)
DayboardViewers = allow_roles(THEATER_TECHNICIAN, ADMIN, NURSE, DOCTOR)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaff])
def list_theaters(request):
    return ok([
        {'id': t.id, 'name': t.name, 'type': t.type, 'isActive': t.is_active}
        for t in theater_service.list_theaters()
    ])


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def book_theater(request):
    s = BookingSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    booking = theater_service.book(request.user, request=request, **s.validated_data)
    return created(theater_service.format_booking(booking))


@api_view(['POST'])
@permission_classes([IsAuthenticated, TheaterStaff])
def transition_case(request, pk: int):
    s = TransitionSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    case = theater_service.transition_case(request.user, pk, s.validated_data['action'], request=request)
    return ok(case_service.format_case(case_service.get_case(case.id)))


@api_view(['GET'])
@permission_classes([IsAuthenticated, DayboardViewers])
def dayboard(request):
    q = DayboardQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    return ok(theater_service.dayboard(q.validated_data.get('date') or timezone.localdate()))
