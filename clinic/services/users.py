from typing import Optional

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Q
from rest_framework.exceptions import NotFound

from clinic.exceptions import Conflict, DomainError
from clinic.models import Doctor
from clinic.services import audit
from clinic.services.patients import clean_text

User = get_user_model()


@transaction.atomic
def create_staff_user(actor, *, username: str, password: str, role: str, first_name: str = '',
                      last_name: str = '', email: str = '', phone: str = '',
                      specialization: str = '', license_number: str = '', request=None):
    """Create a staff account; DOCTOR accounts also get their doctor profile."""
    if role == User.ROLE_PATIENT:
        raise DomainError('Patient accounts cannot be created here')
    if User.objects.filter(username__iexact=username).exists():
        raise Conflict('Username is already taken')

    user = User.objects.create_user(
        username=username, password=password, role=role, email=email or '',
        first_name=clean_text(first_name), last_name=clean_text(last_name), phone=phone or '',
    )
    doctor = None
    if role == User.ROLE_DOCTOR:
        doctor = Doctor.objects.create(
            user=user,
            name=user.get_full_name() or username,
            specialization=clean_text(specialization),
            license_number=license_number or '',
        )
    audit.log_action(user=actor, action=audit.CREATE, object_type='User', object_id=user.id,
                     detail={'role': role, 'doctorId': doctor.id if doctor else None}, request=request)
    return user


@transaction.atomic
def set_status(actor, user_id, status: str, request=None):
    user = User.objects.select_for_update().filter(id=user_id).first()
    if not user:
        raise NotFound('User not found')
    if user.id == actor.id and status != User.STATUS_ACTIVE:
        raise DomainError('You cannot deactivate your own account')
    previous = user.status
    user.status = status
    user.save(update_fields=['status'])
    audit.log_action(user=actor, action=audit.UPDATE, object_type='User', object_id=user.id,
                     detail={'previousStatus': previous, 'newStatus': status}, request=request)
    return user


def list_users(role: Optional[str] = None, q: Optional[str] = None):
    qs = User.objects.order_by('username')
    if role:
        qs = qs.filter(role=role)
    if q:
        qs = qs.filter(Q(username__icontains=q) | Q(first_name__icontains=q) | Q(last_name__icontains=q))
    return qs


def list_doctors(q: Optional[str] = None, active_only: bool = True):
    qs = Doctor.objects.select_related('user').order_by('name')
    if active_only:
        qs = qs.filter(user__status=User.STATUS_ACTIVE, user__is_active=True)
    if q:
        qs = qs.filter(Q(name__icontains=q) | Q(specialization__icontains=q))
    return qs


def format_user(u) -> dict:
    return {
        'id': u.id,
        'username': u.username,
        'name': u.get_full_name() or u.username,
        'email': u.email,
        'phone': u.phone,
        'role': u.role,
        'status': u.status,
        'doctorId': getattr(getattr(u, 'doctor_profile', None), 'id', None),
    }


def format_doctor(d: Doctor) -> dict:
    return {
        'id': d.id,
        'userId': d.user_id,
        'name': d.name,
        'specialization': d.specialization,
        'licenseNumber': d.license_number,
    }
