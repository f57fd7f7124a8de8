"""
Doctor schedules: weekly hours, schedule blocks and bookable slots.

Any staff member may read a doctor's schedule and free slots. Doctors
maintain their own hours and blocks; administrators may maintain
anyone's.
"""
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound, PermissionDenied
from rest_framework.permissions import IsAuthenticated

from clinic.models import Doctor, User
from clinic.permissions import ADMIN, DOCTOR, IsStaff, allow_roles
from clinic.responses import created, ok
from clinic.serializers.availability import (
    AvailabilitySerializer, BlockListQuerySerializer, ScheduleBlockSerializer, SlotQuerySerializer,
)
from clinic.services import availability as availability_service

DoctorOrAdmin = allow_roles(DOCTOR, ADMIN)


def _doctor(pk: int) -> Doctor:
    doctor = Doctor.objects.filter(pk=pk).first()
    if not doctor:
        raise NotFound('Doctor not found')
    return doctor


def _doctor_for_edit(request, pk: int) -> Doctor:
    doctor = _doctor(pk)
    if request.user.role == User.ROLE_DOCTOR and doctor.user_id != request.user.id:
        raise PermissionDenied("Doctors can only change their own schedule")
    return doctor


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaff])
def get_availability(request, pk: int):
    return ok(availability_service.format_availability(_doctor(pk)))


@api_view(['POST'])
@permission_classes([IsAuthenticated, DoctorOrAdmin])
def set_availability(request, pk: int):
    doctor = _doctor_for_edit(request, pk)
    s = AvailabilitySerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    doctor = availability_service.set_availability(
        request.user, doctor, vd['working_days'], slot_minutes=vd.get('slot_minutes'),
        buffer_minutes=vd.get('buffer_minutes'), request=request,
    )
    return ok(availability_service.format_availability(doctor))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaff])
def list_blocks(request, pk: int):
    doctor = _doctor(pk)
    q = BlockListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    qs = doctor.schedule_blocks.order_by('start_date', 'start_time')
    if q.validated_data.get('start'):
        qs = qs.filter(end_date__gte=q.validated_data['start'])
    if q.validated_data.get('end'):
        qs = qs.filter(start_date__lte=q.validated_data['end'])
    return ok([availability_service.format_block(b) for b in qs])


@api_view(['POST'])
@permission_classes([IsAuthenticated, DoctorOrAdmin])
def add_block(request, pk: int):
    doctor = _doctor_for_edit(request, pk)
    s = ScheduleBlockSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    block = availability_service.add_schedule_block(request.user, doctor, request=request, **s.validated_data)
    return created(availability_service.format_block(block))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaff])
def available_slots(request, pk: int):
    doctor = _doctor(pk)
    q = SlotQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    day = q.validated_data['date']
    return ok(availability_service.available_slots(doctor, day), date=day.isoformat())
