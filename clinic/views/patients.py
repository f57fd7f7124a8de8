"""
Patient registry endpoints.

Any staff member may search and open a patient record; front desk and
administrators register patients and edit their demographics.
"""
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from clinic.permissions import ADMIN, FRONTDESK, IsStaff, allow_roles
from clinic.responses import created, ok, paginated
from clinic.serializers.patients import PatientSearchSerializer, PatientSerializer
from clinic.services import patients as patient_service

FrontDeskOrAdmin = allow_roles(FRONTDESK, ADMIN)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaff])
def list_patients(request):
    q = PatientSearchSerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    qs = patient_service.search_patients(q.validated_data.get('q'))
    return paginated(qs, q.validated_data.get('page') or 1, q.validated_data.get('pageSize') or 50,
                     patient_service.format_patient)


@api_view(['POST'])
@permission_classes([IsAuthenticated, FrontDeskOrAdmin])
def register_patient(request):
    s = PatientSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    patient = patient_service.register_patient(request.user, s.validated_data, request=request)
    return created(patient_service.format_patient(patient))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaff])
def patient_detail(request, pk: int):
    return ok(patient_service.format_patient(patient_service.get_patient(pk)))


@api_view(['POST'])
@permission_classes([IsAuthenticated, FrontDeskOrAdmin])
def update_patient(request, pk: int):
    patient = patient_service.get_patient(pk)
    s = PatientSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    patient = patient_service.update_patient(request.user, patient, s.validated_data, request=request)
    return ok(patient_service.format_patient(patient))
