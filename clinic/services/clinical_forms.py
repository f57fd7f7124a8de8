"""
Structured clinical forms attached to a surgical case.

Every form follows DRAFT -> FINAL. Drafts may be saved any number of
times with partially filled data; finalizing re-validates the stored
draft against the full template and freezes it. The gate helpers at
the bottom are what the theater workflow checks before a case moves
into theater, recovery or completion.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import structlog
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied

from clinic.exceptions import AlreadyFinalized, ClinicalGateError, DomainError
from clinic.models import ClinicalFormResponse, SurgicalCase, User
from clinic.serializers import clinical_forms as schemas
from clinic.services import audit
from clinic.services.surgical_cases import ensure_primary_surgeon

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class FormTemplate:
    key: str
    version: int
    slug: str
    title: str
    author_role: str
    serializer_class: type


PREOP_WARD = FormTemplate('NURSE_PREOP_WARD_CHECKLIST', 1, 'preop-ward', 'Pre-op ward checklist',
                          User.ROLE_NURSE, schemas.PreopWardChecklistSerializer)
INTRAOP = FormTemplate('NURSE_INTRAOP_RECORD', 1, 'intraop', 'Intra-operative nursing record',
                       User.ROLE_NURSE, schemas.IntraOpRecordSerializer)
RECOVERY = FormTemplate('NURSE_RECOVERY_RECORD', 1, 'recovery', 'Recovery room record',
                        User.ROLE_NURSE, schemas.RecoveryRecordSerializer)
OPERATIVE_NOTE = FormTemplate('SURGEON_OPERATIVE_NOTE', 1, 'operative-note', 'Surgeon operative note',
                              User.ROLE_DOCTOR, schemas.OperativeNoteSerializer)

TEMPLATES = {t.slug: t for t in (PREOP_WARD, INTRAOP, RECOVERY, OPERATIVE_NOTE)}
READ_ROLES = frozenset({User.ROLE_ADMIN, User.ROLE_DOCTOR, User.ROLE_NURSE, User.ROLE_THEATER_TECHNICIAN})


def template_for(slug: str) -> FormTemplate:
    template = TEMPLATES.get(slug)
    if template is None:
        raise NotFound(f'Unknown clinical form: {slug}')
    return template


def ensure_author(user, template: FormTemplate, case: SurgicalCase) -> None:
    if getattr(user, 'role', None) != template.author_role:
        raise PermissionDenied(f'Only {template.author_role.lower()}s can edit the {template.title.lower()}')
    if template.author_role == User.ROLE_DOCTOR:
        ensure_primary_surgeon(user, case)


def _case(case_id, lock: bool = False) -> SurgicalCase:
    qs = SurgicalCase.objects.select_for_update() if lock else SurgicalCase.objects
    case = qs.filter(id=case_id).first()
    if not case:
        raise NotFound('Surgical case not found')
    return case


def _response_qs(case, template: FormTemplate):
    return ClinicalFormResponse.objects.filter(
        surgical_case=case, template_key=template.key, template_version=template.version,
    )


def get_form(case_id, template: FormTemplate) -> Optional[ClinicalFormResponse]:
    return _response_qs(_case(case_id), template).first()


def final_form(case, template: FormTemplate) -> Optional[ClinicalFormResponse]:
    return _response_qs(case, template).filter(status=ClinicalFormResponse.STATUS_FINAL).first()


def _serializer_context(case, template: FormTemplate) -> dict:
    if template is OPERATIVE_NOTE:
        intraop = _response_qs(case, INTRAOP).first()
        counts = ((intraop.data or {}).get('counts') or {}) if intraop else {}
        return {'nurse_count_discrepancy': bool(counts.get('countDiscrepancy'))}
    return {}


@transaction.atomic
def save_draft(user, case_id, template: FormTemplate, data: dict, request=None) -> ClinicalFormResponse:
    """Create the draft or replace its data; FINAL forms are read-only."""
    case = _case(case_id, lock=True)
    ensure_author(user, template, case)
    if case.status == SurgicalCase.STATUS_CANCELLED:
        raise DomainError('Cannot edit forms of a cancelled case')

    response = _response_qs(case, template).select_for_update().first()
    if response and response.is_final:
        raise AlreadyFinalized(f'{template.title} is finalized and cannot be edited')

    serializer = template.serializer_class(data=data, partial=True, context=_serializer_context(case, template))
    serializer.is_valid(raise_exception=True)
    cleaned = serializer.validated_data

    created = response is None
    if created:
        response = ClinicalFormResponse(
            surgical_case=case, template_key=template.key, template_version=template.version, created_by=user,
        )
    response.data = cleaned
    response.updated_by = user
    response.save()
    audit.log_action(user=user, action=audit.CREATE if created else audit.UPDATE, object_type='ClinicalFormResponse',
                     object_id=response.id, detail={'templateKey': template.key, 'surgicalCaseId': case.id,
                                                    'status': response.status}, request=request)
    return response


@transaction.atomic
def finalize(user, case_id, template: FormTemplate, request=None) -> ClinicalFormResponse:
    case = _case(case_id, lock=True)
    ensure_author(user, template, case)
    response = _response_qs(case, template).select_for_update().first()
    if response is None:
        raise NotFound(f'No draft {template.title.lower()} to finalize')
    if response.is_final:
        raise AlreadyFinalized(f'{template.title} is already finalized')

    serializer = template.serializer_class(data=response.data or {}, context=_serializer_context(case, template))
    if not serializer.is_valid():
        missing = schemas.flatten_errors(serializer.errors)
        logger.info('clinical_form_incomplete', template_key=template.key, case_id=case.id, missing=len(missing))
        raise ClinicalGateError(f'{template.title} is incomplete', missing)

    response.data = serializer.validated_data
    response.status = ClinicalFormResponse.STATUS_FINAL
    response.signed_by = user
    response.signed_at = timezone.now()
    response.updated_by = user
    response.save()
    audit.log_action(user=user, action=audit.FINALIZE, object_type='ClinicalFormResponse', object_id=response.id,
                     detail={'templateKey': template.key, 'templateVersion': template.version,
                             'surgicalCaseId': case.id}, request=request)
    return response


# ---------------------------------------------------------------------------
# Gates checked by the theater workflow
# ---------------------------------------------------------------------------
def intraop_recovery_items(data: dict) -> list[str]:
    counts = data.get('counts') or {}
    sign_out = data.get('signOut') or {}
    items = []
    if not counts.get('finalCountsCompleted'):
        items.append('Final counts not completed')
    if counts.get('countDiscrepancy'):
        items.append('Count discrepancy flagged - resolve before RECOVERY')
    if not sign_out.get('signOutCompleted'):
        items.append('Nurse sign-out not completed')
    if not sign_out.get('postopInstructionsConfirmed'):
        items.append('Post-op instructions not confirmed')
    if not sign_out.get('specimensLabeledConfirmed'):
        items.append('Specimens labeled confirmation missing')
    return items


CRITERIA_LABELS = (
    ('vitalsStable', 'vitals not stable'),
    ('painControlled', 'pain not controlled'),
    ('nauseaControlled', 'nausea not controlled'),
    ('bleedingControlled', 'bleeding not controlled'),
    ('airwayStable', 'airway not stable'),
)


def recovery_completion_items(data: dict) -> list[str]:
    baseline = data.get('arrivalBaseline') or {}
    vitals = data.get('vitalsMonitoring') or {}
    discharge = data.get('dischargeReadiness') or {}
    items = []
    if not baseline.get('timeArrivedRecovery'):
        items.append('Time arrived in recovery not recorded')
    if not vitals.get('observations') and not (vitals.get('vitalsNotRecordedReason') or '').strip():
        items.append('No vitals observations recorded and no reason provided')
    decision = discharge.get('dischargeDecision')
    if not decision:
        items.append('Discharge decision not made')
    elif decision == 'HOLD':
        items.append('Discharge decision is HOLD - patient cannot be discharged')
    criteria = discharge.get('dischargeCriteria') or {}
    for key, label in CRITERIA_LABELS:
        if not criteria.get(key):
            items.append(f'Discharge criteria: {label}')
    if not (discharge.get('finalizedByName') or '').strip():
        items.append('Nurse signature/name not provided')
    return items


def preop_gate(case) -> list[str]:
    if final_form(case, PREOP_WARD) is None:
        return ['Pre-op ward checklist not finalized']
    return []


def recovery_gate(case) -> list[str]:
    form = final_form(case, INTRAOP)
    if form is None:
        return ['Intra-op nursing record not finalized']
    return intraop_recovery_items(form.data or {})


def completion_gate(case) -> list[str]:
    form = final_form(case, RECOVERY)
    if form is None:
        return ['Recovery record not finalized']
    return recovery_completion_items(form.data or {})


def format_form(response: Optional[ClinicalFormResponse]) -> Optional[dict]:
    if response is None:
        return None
    return {
        'id': response.id,
        'templateKey': response.template_key,
        'templateVersion': response.template_version,
        'surgicalCaseId': response.surgical_case_id,
        'status': response.status,
        'data': response.data,
        'signedById': response.signed_by_id,
        'signedAt': response.signed_at.isoformat() if response.signed_at else None,
        'updatedAt': response.updated_at.isoformat() if response.updated_at else None,
    }
