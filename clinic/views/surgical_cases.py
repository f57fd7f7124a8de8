"""
Surgical case endpoints used while planning an operation.

Mutations are limited to the case's primary surgeon (checked in the
service layer after the role check here); nurses may attach photos and
administrators may cancel.
"""
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from clinic.permissions import ADMIN, DOCTOR, NURSE, THEATER_TECHNICIAN, IsClinical, IsDoctor, allow_roles
from clinic.responses import created, ok
from clinic.serializers.surgical import (
    CancelCaseSerializer, CaseListQuerySerializer, CasePhotoSerializer, ConsentCreateSerializer,
    SurgicalPlanUpdateSerializer,
)
from clinic.services import surgical_cases as case_service

CaseViewers = allow_roles(DOCTOR, NURSE, ADMIN, THEATER_TECHNICIAN)
DoctorOrNurse = allow_roles(DOCTOR, NURSE)
DoctorOrAdmin = allow_roles(DOCTOR, ADMIN)


@api_view(['GET'])
@permission_classes([IsAuthenticated, CaseViewers])
def list_cases(request):
    q = CaseListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    qs = case_service.list_cases(request.user, q.validated_data.get('status'))
    return ok([case_service.format_case(c) for c in qs[:500]])


@api_view(['GET'])
@permission_classes([IsAuthenticated, CaseViewers])
def case_detail(request, pk: int):
    return ok(case_service.format_case(case_service.get_case(pk), detail=True))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDoctor])
def update_plan(request, pk: int):
    s = SurgicalPlanUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    plan_fields, case_fields = s.split()
    case = case_service.update_plan(request.user, pk, plan_fields, case_fields, request=request)
    return ok(case_service.format_case(case, detail=True))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsClinical])
def readiness(request, pk: int):
    return ok(case_service.readiness(case_service.get_case(pk)))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDoctor])
def mark_ready(request, pk: int):
    case = case_service.mark_ready(request.user, pk, request=request)
    return ok(case_service.format_case(case))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDoctor])
def create_consent(request, pk: int):
    s = ConsentCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    consent = case_service.create_consent(request.user, pk, request=request, **s.validated_data)
    return created(case_service.format_consent(consent))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDoctor])
def sign_consent(request, pk: int, consent_id: int):
    consent = case_service.sign_consent(request.user, pk, consent_id, request=request)
    return ok(case_service.format_consent(consent))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDoctor])
def revoke_consent(request, pk: int, consent_id: int):
    consent = case_service.revoke_consent(request.user, pk, consent_id, request=request)
    return ok(case_service.format_consent(consent))


@api_view(['POST'])
@permission_classes([IsAuthenticated, DoctorOrNurse])
def add_photo(request, pk: int):
    s = CasePhotoSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    photo = case_service.add_photo(request.user, pk, request=request, **s.validated_data)
    return created(case_service.format_photo(photo))


@api_view(['POST'])
@permission_classes([IsAuthenticated, DoctorOrAdmin])
def cancel_case(request, pk: int):
    s = CancelCaseSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    case = case_service.cancel_case(request.user, pk, s.validated_data['reason'], request=request)
    return ok(case_service.format_case(case))
