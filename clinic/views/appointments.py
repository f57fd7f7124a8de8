"""
Appointment scheduling and the consultation day.

Front desk books, reschedules, checks in, cancels and records no-shows;
the doctor on the appointment confirms, rejects or moves it and runs the
consultation, saving draft notes along the way.
"""
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from clinic.models import Appointment, User
from clinic.permissions import ADMIN, DOCTOR, FRONTDESK, IsDoctor, IsStaff, allow_roles
from clinic.responses import created, ok
from clinic.serializers.appointments import (
    AppointmentCreateSerializer, AppointmentListQuerySerializer, CheckInSerializer, ConsultationDraftSerializer,
    ConsultationSerializer, ReasonSerializer, RescheduleSerializer,
)
from clinic.services import appointments as appt_service
from clinic.services.dashboards import todays_appointments
from clinic.services.patients import doctor_for_user

FrontDeskOrAdmin = allow_roles(FRONTDESK, ADMIN)
FrontDeskAdminOrDoctor = allow_roles(FRONTDESK, ADMIN, DOCTOR)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaff])
def list_appointments(request):
    q = AppointmentListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    qs = Appointment.objects.select_related('patient', 'doctor').order_by('appointment_date', 'time')
    if request.user.role == User.ROLE_DOCTOR:
        qs = qs.filter(doctor=doctor_for_user(request.user))
    elif vd.get('doctorId'):
        qs = qs.filter(doctor_id=vd['doctorId'])
    if vd.get('date'):
        qs = qs.filter(appointment_date=vd['date'])
    if vd.get('status'):
        qs = qs.filter(status=vd['status'])
    if vd.get('patientId'):
        qs = qs.filter(patient_id=vd['patientId'])
    return ok([appt_service.format_appointment(a) for a in qs[:500]])


@api_view(['GET'])
@permission_classes([IsAuthenticated, FrontDeskAdminOrDoctor])
def today(request):
    doctor = doctor_for_user(request.user) if request.user.role == User.ROLE_DOCTOR else None
    return ok([appt_service.format_appointment(a) for a in todays_appointments(doctor)])


@api_view(['POST'])
@permission_classes([IsAuthenticated, FrontDeskOrAdmin])
def create_appointment(request):
    s = AppointmentCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    appt = appt_service.schedule(request.user, request=request, **s.validated_data)
    return created(appt_service.format_appointment(appt))


@api_view(['POST'])
@permission_classes([IsAuthenticated, FrontDeskAdminOrDoctor])
def reschedule_appointment(request, pk: int):
    s = RescheduleSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    appt = appt_service.reschedule(request.user, pk, request=request, **s.validated_data)
    return ok(appt_service.format_appointment(appt))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDoctor])
def confirm_appointment(request, pk: int):
    appt = appt_service.confirm_by_doctor(request.user, pk, request=request)
    return ok(appt_service.format_appointment(appt))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDoctor])
def reject_appointment(request, pk: int):
    s = ReasonSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    appt = appt_service.reject_by_doctor(request.user, pk, s.validated_data['reason'], request=request)
    return ok(appt_service.format_appointment(appt))


@api_view(['POST'])
@permission_classes([IsAuthenticated, FrontDeskOrAdmin])
def check_in(request, pk: int):
    s = CheckInSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    appt = appt_service.check_in(request.user, pk, s.validated_data['notes'], request=request)
    return ok(appt_service.format_appointment(appt))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDoctor])
def start_consultation(request, pk: int):
    s = ConsultationSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    consultation = appt_service.start_consultation(request.user, pk, s.validated_data['doctor_notes'], request=request)
    return ok(appt_service.format_consultation(consultation))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDoctor])
def save_consultation_draft(request, pk: int):
    s = ConsultationDraftSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    consultation = appt_service.save_consultation_draft(request.user, pk, s.validated_data['doctor_notes'],
                                                        s.validated_data['version'], request=request)
    return ok(appt_service.format_consultation(consultation))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDoctor])
def complete_consultation(request, pk: int):
    s = ConsultationSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    consultation = appt_service.complete_consultation(request.user, pk, request=request, **s.validated_data)
    return ok(appt_service.format_consultation(consultation))


@api_view(['POST'])
@permission_classes([IsAuthenticated, FrontDeskOrAdmin])
def mark_no_show(request, pk: int):
    s = ReasonSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    appt = appt_service.mark_no_show(request.user, pk, s.validated_data['reason'], s.validated_data['notes'],
                                     request=request)
    return ok(appt_service.format_appointment(appt))


@api_view(['POST'])
@permission_classes([IsAuthenticated, FrontDeskOrAdmin])
def cancel_appointment(request, pk: int):
    s = ReasonSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    appt = appt_service.cancel(request.user, pk, s.validated_data['reason'], request=request)
    return ok(appt_service.format_appointment(appt))
