"""
Case plans written by the operating doctor after a consultation.

A plan belongs to exactly one appointment. Saving a plan that has no
surgical case yet opens one (DRAFT, caller as primary surgeon) and links
it to the plan; later saves reuse that case.
"""
from __future__ import annotations

import html

import bleach
import structlog
from django.db import transaction
from rest_framework.exceptions import NotFound

from clinic.exceptions import DomainError
from clinic.models import Appointment, CasePlan, Consultation, SurgicalCase
from clinic.services import audit
from clinic.services.appointments import ensure_own_appointment

logger = structlog.get_logger(__name__)

RICH_TEXT_TAGS = ['p', 'br', 'strong', 'em', 'b', 'i', 'u', 'ul', 'ol', 'li', 'h3', 'h4']

PLAN_TEXT_FIELDS = ('procedure_plan', 'risk_factors', 'pre_op_notes', 'implant_details', 'special_instructions')
PLAN_FIELDS = PLAN_TEXT_FIELDS + (
    'planned_anesthesia', 'readiness_status', 'ready_for_surgery', 'estimated_duration_minutes',
)


def clean_rich_text(value) -> str:
    return bleach.clean((value or '').strip(), tags=RICH_TEXT_TAGS, strip=True)


def plain_text(value) -> str:
    """Visible text of a rich text value, tags removed."""
    return html.unescape(bleach.clean(value or '', tags=[], strip=True)).strip()


def apply_plan_fields(plan: CasePlan, fields: dict) -> list[str]:
    changed = []
    for key in PLAN_FIELDS:
        if key not in fields:
            continue
        value = fields[key]
        if key in PLAN_TEXT_FIELDS:
            value = clean_rich_text(value)
        if value is None and key != 'estimated_duration_minutes':
            value = '' if key != 'ready_for_surgery' else False
        setattr(plan, key, value)
        changed.append(key)
    return changed


@transaction.atomic
def create_case_plan(user, *, appointment_id, patient_id, fields: dict, request=None) -> tuple[CasePlan, bool]:
    """Create or update the plan for an appointment.

    Returns ``(plan, case_created)``. The plan always ends up linked to
    one surgical case, and ``case.case_plan`` resolves back to the plan.
    """
    if not appointment_id or not patient_id:
        raise DomainError('appointmentId and patientId are required')

    appt = Appointment.objects.select_for_update().select_related('patient').filter(id=appointment_id).first()
    if not appt:
        raise NotFound('Appointment not found')
    doctor = ensure_own_appointment(user, appt)
    if str(appt.patient_id) != str(patient_id):
        raise DomainError('Patient does not match the appointment')
    if appt.status == Appointment.STATUS_CANCELLED:
        raise DomainError('Cannot plan surgery for a cancelled appointment')

    plan = CasePlan.objects.select_for_update().filter(appointment=appt).first()
    created = plan is None
    if created:
        plan = CasePlan(appointment=appt, patient=appt.patient, doctor=doctor)
    changed = apply_plan_fields(plan, fields)
    plan.save()

    case_created = False
    if plan.surgical_case_id is None:
        case = SurgicalCase.objects.create(
            patient=appt.patient,
            primary_surgeon=doctor,
            consultation=Consultation.objects.filter(appointment=appt).first(),
            status=SurgicalCase.STATUS_DRAFT,
            created_by=user,
        )
        plan.surgical_case = case
        plan.save(update_fields=['surgical_case', 'updated_at'])
        case_created = True
        audit.log_action(user=user, action=audit.CREATE, object_type='SurgicalCase', object_id=case.id,
                         detail={'casePlanId': plan.id, 'appointmentId': appt.id}, request=request)
        logger.info('surgical_case_opened', case_id=case.id, case_plan_id=plan.id)

    audit.log_action(user=user, action=audit.CREATE if created else audit.UPDATE, object_type='CasePlan',
                     object_id=plan.id, detail={'appointmentId': appt.id, 'fields': changed}, request=request)
    return plan, case_created


def plan_for_appointment(appointment_id) -> CasePlan | None:
    return (
        CasePlan.objects.select_related('surgical_case', 'patient', 'doctor')
        .filter(appointment_id=appointment_id)
        .first()
    )


def format_case_plan(plan: CasePlan | None) -> dict | None:
    if plan is None:
        return None
    return {
        'id': plan.id,
        'appointmentId': plan.appointment_id,
        'surgicalCaseId': plan.surgical_case_id,
        'patientId': plan.patient_id,
        'doctorId': plan.doctor_id,
        'procedurePlan': plan.procedure_plan,
        'riskFactors': plan.risk_factors,
        'preOpNotes': plan.pre_op_notes,
        'implantDetails': plan.implant_details,
        'plannedAnesthesia': plan.planned_anesthesia or None,
        'specialInstructions': plan.special_instructions,
        'readinessStatus': plan.readiness_status,
        'readyForSurgery': plan.ready_for_surgery,
        'estimatedDurationMinutes': plan.estimated_duration_minutes,
        'updatedAt': plan.updated_at.isoformat() if plan.updated_at else None,
    }
