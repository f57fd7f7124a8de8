"""
Patient self-intake.

Front desk opens a short-lived :class:`IntakeSession` and hands the
``session_id`` to the patient, who submits their details without
logging in. Front desk then reviews the submission and either confirms
it (creating the patient record with a new file number) or rejects it.

Session lifecycle: ACTIVE -> SUBMITTED -> CONFIRMED, or ACTIVE -> EXPIRED.
"""
import structlog
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound

from clinic.exceptions import DomainError
from clinic.models import IntakeSession, IntakeSubmission
from clinic.services import audit
from clinic.services.patients import clean_text, create_patient_record

logger = structlog.get_logger(__name__)

REQUIRED_FIELDS = ('first_name', 'last_name', 'date_of_birth', 'gender', 'phone')
REQUIRED_CONSENTS = ('privacy_consent', 'service_consent', 'medical_consent')


def start_session(user, request=None) -> IntakeSession:
    session = IntakeSession.objects.create(created_by=user)
    audit.log_action(user=user, action=audit.CREATE, object_type='IntakeSession', object_id=session.session_id,
                     detail={'expiresAt': session.expires_at.isoformat()}, request=request)
    return session


def _expire(session: IntakeSession) -> None:
    IntakeSession.objects.filter(pk=session.pk, status=IntakeSession.STATUS_ACTIVE).update(status=IntakeSession.STATUS_EXPIRED)
    logger.info('intake_session_expired', session_id=session.session_id)


def submit(session_id: str, data: dict, request=None) -> IntakeSubmission:
    session = IntakeSession.objects.filter(session_id=session_id).first()
    if not session:
        raise NotFound('Intake session not found')
    if session.status == IntakeSession.STATUS_ACTIVE and session.is_expired():
        _expire(session)
        raise DomainError('Session has expired')

    with transaction.atomic():
        session = IntakeSession.objects.select_for_update().get(pk=session.pk)
        if session.status != IntakeSession.STATUS_ACTIVE:
            raise DomainError('Session is not accepting submissions at this time')
        fields = dict(data)
        for key in ('first_name', 'last_name', 'address', 'allergies', 'medical_history'):
            if key in fields:
                fields[key] = clean_text(fields[key])
        submission = IntakeSubmission.objects.create(session=session, **fields)
        session.status = IntakeSession.STATUS_SUBMITTED
        session.save(update_fields=['status'])
        audit.log_action(user=None, action=audit.CREATE, object_type='IntakeSubmission', object_id=submission.id,
                         detail={'sessionId': session.session_id}, request=request)
    return submission


def _locked_submission(session_id: str) -> IntakeSubmission:
    submission = (
        IntakeSubmission.objects.select_for_update()
        .select_related('session')
        .filter(session__session_id=session_id)
        .first()
    )
    if not submission:
        raise NotFound('Intake submission not found')
    if submission.status == IntakeSubmission.STATUS_CONFIRMED:
        raise DomainError('Intake has already been confirmed')
    if submission.status == IntakeSubmission.STATUS_REJECTED:
        raise DomainError('Intake has been rejected')
    return submission


def missing_fields(submission: IntakeSubmission) -> list[str]:
    missing = [f for f in REQUIRED_FIELDS if not getattr(submission, f)]
    missing += [f for f in REQUIRED_CONSENTS if not getattr(submission, f)]
    return missing


@transaction.atomic
def confirm(user, session_id: str, request=None):
    submission = _locked_submission(session_id)
    missing = missing_fields(submission)
    if missing:
        raise DomainError('Intake submission is incomplete', details={'missingFields': missing})

    patient = create_patient_record({f: getattr(submission, f) for f in (
        'first_name', 'last_name', 'date_of_birth', 'gender', 'phone', 'email', 'address',
        'emergency_contact_name', 'emergency_contact_number', 'relation', 'allergies', 'medical_history',
    )})
    now = timezone.now()
    submission.status = IntakeSubmission.STATUS_CONFIRMED
    submission.created_patient = patient
    submission.confirmed_at = now
    submission.confirmed_by = user
    submission.save(update_fields=['status', 'created_patient', 'confirmed_at', 'confirmed_by'])
    session = submission.session
    session.status = IntakeSession.STATUS_CONFIRMED
    session.save(update_fields=['status'])

    audit.log_action(user=user, action=audit.CREATE, object_type='Patient', object_id=patient.id,
                     detail={'fileNumber': patient.file_number, 'intakeSessionId': session_id}, request=request)
    return submission, patient


@transaction.atomic
def reject(user, session_id: str, reason: str, request=None) -> IntakeSubmission:
    reason = clean_text(reason)
    if not reason:
        raise DomainError('Rejection reason is required')
    submission = _locked_submission(session_id)
    submission.status = IntakeSubmission.STATUS_REJECTED
    submission.rejection_reason = reason
    submission.save(update_fields=['status', 'rejection_reason'])
    audit.log_action(user=user, action=audit.UPDATE, object_type='IntakeSubmission', object_id=submission.id,
                     detail={'status': submission.status, 'reason': reason}, request=request)
    return submission


def pending():
    return (
        IntakeSubmission.objects.select_related('session')
        .filter(status=IntakeSubmission.STATUS_PENDING)
        .order_by('submitted_at')
    )


def format_submission(s: IntakeSubmission) -> dict:
    return {
        'id': s.id,
        'sessionId': s.session.session_id,
        'status': s.status,
        'firstName': s.first_name,
        'lastName': s.last_name,
        'dateOfBirth': s.date_of_birth.isoformat() if s.date_of_birth else None,
        'gender': s.gender,
        'phone': s.phone,
        'email': s.email,
        'submittedAt': s.submitted_at.isoformat() if s.submitted_at else None,
        'patientId': s.created_patient_id,
        'rejectionReason': s.rejection_reason or None,
    }
