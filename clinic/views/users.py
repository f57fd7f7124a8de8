"""
Staff accounts and doctor profiles.

Administrators create accounts and change their status; a non-ACTIVE
account can no longer log in and its outstanding tokens stop working.
"""
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from clinic.permissions import IsAdminRole, IsStaff
from clinic.responses import created, ok
from clinic.serializers.users import (
    DoctorCreateSerializer, UserCreateSerializer, UserListQuerySerializer, UserStatusSerializer,
)
from clinic.services import users as user_service


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def list_users(request):
    q = UserListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    qs = user_service.list_users(q.validated_data.get('role'), q.validated_data.get('q'))
    return ok([user_service.format_user(u) for u in qs.select_related('doctor_profile')])


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def create_user(request):
    s = UserCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    user = user_service.create_staff_user(request.user, request=request, **s.validated_data)
    return created(user_service.format_user(user))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def set_user_status(request, pk: int):
    s = UserStatusSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    user = user_service.set_status(request.user, pk, s.validated_data['status'], request=request)
    return ok(user_service.format_user(user))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaff])
def list_doctors(request):
    qs = user_service.list_doctors(request.query_params.get('q'))
    return ok([user_service.format_doctor(d) for d in qs])


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def create_doctor(request):
    s = DoctorCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    user = user_service.create_staff_user(request.user, request=request, **s.validated_data)
    return created(user_service.format_doctor(user.doctor_profile))
