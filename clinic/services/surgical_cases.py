"""
Surgical case planning: plan edits, the readiness checklist, consents,
photos and cancellation. Theater milestones live in
:mod:`clinic.services.theater`.
"""
from __future__ import annotations

import structlog
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied

from clinic.exceptions import ClinicalGateError, Conflict, DomainError
from clinic.models import CasePhoto, CasePlan, ConsentForm, SurgicalCase, TheaterBooking, User
from clinic.services import audit
from clinic.services.case_plans import apply_plan_fields, format_case_plan, plain_text
from clinic.services.patients import clean_text, doctor_for_user
from clinic.services.workflow import ensure_transition, is_terminal

logger = structlog.get_logger(__name__)

S = SurgicalCase

READINESS_ITEMS = (
    ('procedure', 'Procedure Plan'),
    ('risk', 'Risk Assessment'),
    ('anesthesia', 'Anesthesia Plan'),
    ('consents', 'Consent Signed'),
    ('photos', 'Pre-Op Photos'),
)
MIN_PROCEDURE_PLAN_CHARS = 10
MIN_RISK_CHARS = 5


def get_case(case_id) -> SurgicalCase:
    case = (
        SurgicalCase.objects.select_related('patient', 'primary_surgeon', 'consultation')
        .filter(id=case_id)
        .first()
    )
    if not case:
        raise NotFound('Surgical case not found')
    return case


def _locked(case_id) -> SurgicalCase:
    case = SurgicalCase.objects.select_for_update().filter(id=case_id).first()
    if not case:
        raise NotFound('Surgical case not found')
    return case


def ensure_primary_surgeon(user, case: SurgicalCase) -> None:
    doctor = doctor_for_user(user)
    if case.primary_surgeon_id != doctor.id:
        raise PermissionDenied('Only the primary surgeon can modify this case')


def case_plan_of(case: SurgicalCase) -> CasePlan | None:
    return CasePlan.objects.filter(surgical_case=case).first()


# ---------------------------------------------------------------------------
# Plan
# ---------------------------------------------------------------------------
@transaction.atomic
def update_plan(user, case_id, fields: dict, case_fields: dict | None = None, request=None) -> SurgicalCase:
    """Update plan sections and case details; a DRAFT case moves to PLANNING."""
    case = _locked(case_id)
    ensure_primary_surgeon(user, case)
    if is_terminal('SurgicalCase', case.status):
        raise DomainError(f'Cannot update the plan of a {case.status.lower()} case')

    if 'procedure_plan' in fields and fields['procedure_plan'] and not plain_text(fields['procedure_plan']):
        raise DomainError('Procedure plan cannot be empty HTML tags. Please enter meaningful content.')

    plan = case_plan_of(case)
    if plan is None:
        raise DomainError('Case plan not found for this surgical case')
    changed = apply_plan_fields(plan, fields)
    if changed:
        plan.save()

    case_changed = []
    for key, value in (case_fields or {}).items():
        if key in ('procedure_name', 'side', 'diagnosis'):
            setattr(case, key, clean_text(value))
            case_changed.append(key)
        elif key == 'urgency':
            setattr(case, key, value)
            case_changed.append(key)

    previous = case.status
    if case.status == S.STATUS_DRAFT:
        ensure_transition('SurgicalCase', case.status, S.STATUS_PLANNING)
        case.status = S.STATUS_PLANNING
        case_changed.append('status')
    if case_changed:
        case.save(update_fields=case_changed + ['updated_at'])

    audit.log_action(user=user, action=audit.UPDATE, object_type='CasePlan', object_id=plan.id,
                     detail={'surgicalCaseId': case.id, 'fields': changed, 'caseFields': case_changed,
                             'previousStatus': previous, 'newStatus': case.status}, request=request)
    return case


def readiness(case: SurgicalCase) -> dict:
    """Planning checklist shown before a case can be scheduled."""
    plan = case_plan_of(case)
    done = {
        'procedure': bool(plan) and len(plain_text(plan.procedure_plan)) >= MIN_PROCEDURE_PLAN_CHARS,
        'risk': bool(plan) and len(plain_text(plan.risk_factors)) >= MIN_RISK_CHARS,
        'anesthesia': bool(plan) and bool(plan.planned_anesthesia),
        'consents': case.consents.filter(status=ConsentForm.STATUS_SIGNED).exists(),
        'photos': case.photos.filter(timepoint=CasePhoto.TIMEPOINT_PRE_OP).exists(),
    }
    items = [{'key': key, 'label': label, 'done': done[key]} for key, label in READINESS_ITEMS]
    missing = [item['label'] for item in items if not item['done']]
    return {
        'items': items,
        'missingRequired': missing,
        'isComplete': not missing,
        'completedCount': len(items) - len(missing),
        'totalRequired': len(items),
    }


@transaction.atomic
def mark_ready(user, case_id, request=None) -> SurgicalCase:
    case = _locked(case_id)
    ensure_primary_surgeon(user, case)
    ensure_transition('SurgicalCase', case.status, S.STATUS_READY_FOR_SCHEDULING)
    check = readiness(case)
    if not check['isComplete']:
        raise ClinicalGateError('Case is not ready for scheduling', check['missingRequired'])

    previous = case.status
    case.status = S.STATUS_READY_FOR_SCHEDULING
    case.save(update_fields=['status', 'updated_at'])
    CasePlan.objects.filter(surgical_case=case).update(readiness_status='READY', ready_for_surgery=True)
    audit.log_action(user=user, action=audit.CASE_TRANSITION, object_type='SurgicalCase', object_id=case.id,
                     detail={'previousStatus': previous, 'newStatus': case.status}, request=request)
    return case


# ---------------------------------------------------------------------------
# Consents and photos
# ---------------------------------------------------------------------------
@transaction.atomic
def create_consent(user, case_id, *, type: str, title: str, request=None) -> ConsentForm:
    case = _locked(case_id)
    ensure_primary_surgeon(user, case)
    if is_terminal('SurgicalCase', case.status):
        raise DomainError('Cannot add consents to a closed case')
    if case_plan_of(case) is None:
        raise DomainError('Case plan must exist before consents can be created')
    if case.consents.filter(type=type).exclude(status=ConsentForm.STATUS_REVOKED).exists():
        raise Conflict(f'A {type} consent already exists for this case')
    consent = ConsentForm.objects.create(surgical_case=case, type=type, title=clean_text(title), created_by=user)
    audit.log_action(user=user, action=audit.CREATE, object_type='ConsentForm', object_id=consent.id,
                     detail={'surgicalCaseId': case.id, 'type': type}, request=request)
    return consent


def _locked_consent(case_id, consent_id) -> ConsentForm:
    consent = ConsentForm.objects.select_for_update().filter(id=consent_id, surgical_case_id=case_id).first()
    if not consent:
        raise NotFound('Consent form not found')
    return consent


@transaction.atomic
def sign_consent(user, case_id, consent_id, request=None) -> ConsentForm:
    case = _locked(case_id)
    ensure_primary_surgeon(user, case)
    consent = _locked_consent(case.id, consent_id)
    if consent.status == ConsentForm.STATUS_SIGNED:
        raise DomainError('Consent form is already signed')
    if consent.status == ConsentForm.STATUS_REVOKED:
        raise DomainError('A revoked consent form cannot be signed')
    consent.status = ConsentForm.STATUS_SIGNED
    consent.signed_at = timezone.now()
    consent.signed_by = user
    consent.save(update_fields=['status', 'signed_at', 'signed_by'])
    audit.log_action(user=user, action=audit.CONSENT_SIGNED, object_type='ConsentForm', object_id=consent.id,
                     detail={'surgicalCaseId': case.id, 'type': consent.type}, request=request)
    return consent


@transaction.atomic
def revoke_consent(user, case_id, consent_id, request=None) -> ConsentForm:
    case = _locked(case_id)
    ensure_primary_surgeon(user, case)
    consent = _locked_consent(case.id, consent_id)
    if consent.status == ConsentForm.STATUS_REVOKED:
        raise DomainError('Consent form is already revoked')
    consent.status = ConsentForm.STATUS_REVOKED
    consent.save(update_fields=['status'])
    audit.log_action(user=user, action=audit.UPDATE, object_type='ConsentForm', object_id=consent.id,
                     detail={'surgicalCaseId': case.id, 'status': consent.status}, request=request)
    return consent


@transaction.atomic
def add_photo(user, case_id, *, timepoint: str, image_url: str, description: str = '', request=None) -> CasePhoto:
    case = _locked(case_id)
    if user.role == User.ROLE_DOCTOR:
        ensure_primary_surgeon(user, case)
    if case.status == S.STATUS_CANCELLED:
        raise DomainError('Cannot add photos to a cancelled case')
    photo = CasePhoto.objects.create(surgical_case=case, timepoint=timepoint, image_url=image_url,
                                     description=clean_text(description), taken_by=user)
    audit.log_action(user=user, action=audit.CREATE, object_type='CasePhoto', object_id=photo.id,
                     detail={'surgicalCaseId': case.id, 'timepoint': timepoint}, request=request)
    return photo


# ---------------------------------------------------------------------------
# Cancellation and listing
# ---------------------------------------------------------------------------
@transaction.atomic
def cancel_case(user, case_id, reason: str, request=None) -> SurgicalCase:
    reason = clean_text(reason)
    if not reason:
        raise DomainError('Cancellation reason is required')
    case = _locked(case_id)
    if user.role == User.ROLE_DOCTOR:
        ensure_primary_surgeon(user, case)
    ensure_transition('SurgicalCase', case.status, S.STATUS_CANCELLED)

    previous = case.status
    case.status = S.STATUS_CANCELLED
    case.cancellation_reason = reason
    case.save(update_fields=['status', 'cancellation_reason', 'updated_at'])
    released = (
        TheaterBooking.objects.filter(surgical_case=case)
        .exclude(status__in=[TheaterBooking.STATUS_CANCELLED, TheaterBooking.STATUS_COMPLETED])
        .update(status=TheaterBooking.STATUS_CANCELLED)
    )
    audit.log_action(user=user, action=audit.CASE_TRANSITION, object_type='SurgicalCase', object_id=case.id,
                     detail={'previousStatus': previous, 'newStatus': case.status, 'reason': reason,
                             'bookingsCancelled': released}, request=request)
    return case


def list_cases(user, status: str | None = None):
    qs = SurgicalCase.objects.select_related('patient', 'primary_surgeon').order_by('-created_at')
    if user.role == User.ROLE_DOCTOR:
        qs = qs.filter(primary_surgeon=doctor_for_user(user))
    if status:
        qs = qs.filter(status=status)
    return qs


def format_consent(c: ConsentForm) -> dict:
    return {
        'id': c.id,
        'type': c.type,
        'title': c.title,
        'status': c.status,
        'signedAt': c.signed_at.isoformat() if c.signed_at else None,
        'createdAt': c.created_at.isoformat() if c.created_at else None,
    }


def format_photo(p: CasePhoto) -> dict:
    return {
        'id': p.id,
        'timepoint': p.timepoint,
        'imageUrl': p.image_url,
        'description': p.description,
        'takenAt': p.created_at.isoformat() if p.created_at else None,
    }


def format_case(case: SurgicalCase, detail: bool = False) -> dict:
    data = {
        'id': case.id,
        'status': case.status,
        'urgency': case.urgency,
        'diagnosis': case.diagnosis,
        'procedureName': case.procedure_name,
        'side': case.side,
        'patient': {
            'id': case.patient_id,
            'name': case.patient.full_name,
            'fileNumber': case.patient.file_number,
        },
        'primarySurgeon': {'id': case.primary_surgeon_id, 'name': case.primary_surgeon.name},
        'wheelsInAt': case.wheels_in_at.isoformat() if case.wheels_in_at else None,
        'wheelsOutAt': case.wheels_out_at.isoformat() if case.wheels_out_at else None,
        'createdAt': case.created_at.isoformat() if case.created_at else None,
    }
    if detail:
        data['casePlan'] = format_case_plan(case_plan_of(case))
        data['consents'] = [format_consent(c) for c in case.consents.order_by('created_at')]
        data['photos'] = [format_photo(p) for p in case.photos.order_by('created_at')]
        data['readiness'] = readiness(case)
    return data
