import html
import re

import bleach
import structlog
from django.db import IntegrityError, transaction
from django.db.models import Q
from rest_framework.exceptions import NotFound

from clinic.exceptions import DomainError
from clinic.models import Doctor, Patient
from clinic.services import audit

logger = structlog.get_logger(__name__)

FILE_NUMBER_PREFIX = 'NS'
FILE_NUMBER_MAX = 999999
_FILE_NUMBER_RE = re.compile(rf'^{FILE_NUMBER_PREFIX}(\d+)$')

PATIENT_FIELDS = (
    'first_name', 'last_name', 'date_of_birth', 'gender', 'phone', 'email', 'address',
    'emergency_contact_name', 'emergency_contact_number', 'relation', 'allergies', 'medical_history',
)


def clean_text(value) -> str:
    """Strip markup from free text; the result is stored and returned as plain text."""
    return html.unescape(bleach.clean((value or '').strip(), tags=[], strip=True))


def next_file_number() -> str:
    """Return the next ``NS001`` style file number.

    File numbers are compared numerically since ``NS1000`` sorts before
    ``NS999`` as text.
    """
    highest = 0
    for number in Patient.objects.filter(file_number__startswith=FILE_NUMBER_PREFIX).values_list('file_number', flat=True):
        m = _FILE_NUMBER_RE.match(number)
        if m:
            highest = max(highest, int(m.group(1)))
    nxt = highest + 1
    if nxt > FILE_NUMBER_MAX:
        raise DomainError('Patient file number range exhausted')
    return f'{FILE_NUMBER_PREFIX}{nxt:03d}'


def create_patient_record(fields: dict) -> Patient:
    """Insert a patient with a fresh file number, retrying on a number collision."""
    values = {k: fields[k] for k in PATIENT_FIELDS if k in fields}
    for attempt in range(3):
        try:
            with transaction.atomic():
                return Patient.objects.create(file_number=next_file_number(), **values)
        except IntegrityError:
            logger.warning('file_number_collision', attempt=attempt + 1)
    raise DomainError('Could not allocate a patient file number, please retry')


@transaction.atomic
def register_patient(user, data: dict, request=None) -> Patient:
    data = dict(data)
    for key in ('first_name', 'last_name', 'address', 'allergies', 'medical_history'):
        if key in data:
            data[key] = clean_text(data[key])
    patient = create_patient_record(data)
    audit.log_action(user=user, action=audit.CREATE, object_type='Patient', object_id=patient.id,
                     detail={'fileNumber': patient.file_number}, request=request)
    return patient


@transaction.atomic
def update_patient(user, patient: Patient, data: dict, request=None) -> Patient:
    changed = []
    for key in PATIENT_FIELDS:
        if key in data:
            value = data[key]
            if isinstance(value, str):
                value = clean_text(value)
            setattr(patient, key, value)
            changed.append(key)
    if changed:
        patient.save(update_fields=changed + ['updated_at'])
        audit.log_action(user=user, action=audit.UPDATE, object_type='Patient', object_id=patient.id,
                         detail={'fields': changed}, request=request)
    return patient


def search_patients(q: str | None = None):
    qs = Patient.objects.all().order_by('-created_at')
    if q:
        qs = qs.filter(
            Q(first_name__icontains=q) | Q(last_name__icontains=q)
            | Q(file_number__iexact=q) | Q(phone__icontains=q)
        )
    return qs


def get_patient(patient_id) -> Patient:
    patient = Patient.objects.filter(id=patient_id).first()
    if not patient:
        raise NotFound('Patient not found')
    return patient


def doctor_for_user(user) -> Doctor:
    """Return the caller's doctor profile or answer 404."""
    doctor = Doctor.objects.filter(user_id=getattr(user, 'id', None)).first()
    if not doctor:
        raise NotFound('Doctor profile not found')
    return doctor


def format_patient(p: Patient) -> dict:
    return {
        'id': p.id,
        'fileNumber': p.file_number,
        'firstName': p.first_name,
        'lastName': p.last_name,
        'name': p.full_name,
        'dateOfBirth': p.date_of_birth.isoformat() if p.date_of_birth else None,
        'gender': p.gender,
        'phone': p.phone,
        'email': p.email,
        'address': p.address,
        'emergencyContactName': p.emergency_contact_name,
        'emergencyContactNumber': p.emergency_contact_number,
        'relation': p.relation,
        'allergies': p.allergies,
        'medicalHistory': p.medical_history,
        'createdAt': p.created_at.isoformat() if p.created_at else None,
    }
