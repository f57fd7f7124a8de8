"""
Appointment use-cases.

Each function validates, locks the appointment row, applies one status
change through the appointment status machine and records an audit
event, all inside one transaction. Ownership checks ("the doctor on
this appointment") raise ``PermissionDenied`` before anything is
written.
"""
from __future__ import annotations

from datetime import date, datetime

import structlog
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied

from clinic.exceptions import AlreadyFinalized, Conflict, DomainError
from clinic.models import Appointment, Consultation, Doctor, Patient, User
from clinic.services import audit, availability
from clinic.services.patients import clean_text, doctor_for_user
from clinic.services.workflow import ensure_transition

logger = structlog.get_logger(__name__)

A = Appointment
BLOCKING_STATUSES = (A.STATUS_CANCELLED,)


def scheduled_datetime(appointment_date: date, time_str: str) -> datetime:
    """Combine the appointment date and ``HH:MM`` into an aware datetime."""
    hours, minutes = (int(x) for x in time_str.split(':'))
    naive = datetime(appointment_date.year, appointment_date.month, appointment_date.day, hours, minutes)
    return timezone.make_aware(naive, timezone.get_current_timezone())


def _locked(appointment_id) -> Appointment:
    appt = Appointment.objects.select_for_update().filter(id=appointment_id).first()
    if not appt:
        raise NotFound('Appointment not found')
    return appt


def ensure_own_appointment(user, appt: Appointment) -> Doctor:
    doctor = doctor_for_user(user)
    if appt.doctor_id != doctor.id:
        raise PermissionDenied('Appointment is assigned to a different doctor')
    return doctor


def _reject_closed(appt: Appointment, verb: str) -> None:
    if appt.status == A.STATUS_CANCELLED:
        raise DomainError(f'Cannot {verb} a cancelled appointment')
    if appt.status == A.STATUS_COMPLETED:
        raise DomainError(f'Cannot {verb} a completed appointment')


def _ensure_slot_free(patient, doctor, appointment_date: date, time: str, exclude_id=None) -> None:
    same_slot = Appointment.objects.filter(appointment_date=appointment_date, time=time).exclude(status__in=BLOCKING_STATUSES)
    if exclude_id is not None:
        same_slot = same_slot.exclude(id=exclude_id)
    if same_slot.filter(patient=patient).exists():
        raise Conflict('Patient already has an appointment at this time')
    if same_slot.filter(doctor=doctor).exists():
        raise Conflict('Doctor already has an appointment at this time')


@transaction.atomic
def schedule(user, *, patient_id, doctor_id, appointment_date: date, time: str,
             type: str = 'Consultation', reason: str = '', note: str = '', request=None) -> Appointment:
    patient = Patient.objects.filter(id=patient_id).first()
    if not patient:
        raise NotFound('Patient not found')
    doctor = Doctor.objects.select_for_update().filter(id=doctor_id).first()
    if not doctor:
        raise NotFound('Doctor not found')
    if scheduled_datetime(appointment_date, time) < timezone.now():
        raise DomainError('Appointment date cannot be in the past')

    _ensure_slot_free(patient, doctor, appointment_date, time)
    availability.ensure_slot_available(doctor, appointment_date, time)

    appt = Appointment.objects.create(
        patient=patient, doctor=doctor, appointment_date=appointment_date, time=time,
        type=type or 'Consultation', reason=clean_text(reason), note=clean_text(note), created_by=user,
    )
    audit.log_action(user=user, action=audit.CREATE, object_type='Appointment', object_id=appt.id,
                     detail={'patientId': patient.id, 'doctorId': doctor.id,
                             'date': appointment_date.isoformat(), 'time': time}, request=request)
    return appt


@transaction.atomic
def reschedule(user, appointment_id, *, appointment_date: date, time: str, reason: str = '',
               request=None) -> Appointment:
    """Move an open appointment to a new date and time.

    The new slot goes through the same double-booking and availability
    checks as a fresh booking. When the appointment's own doctor moves
    it, the move also counts as the doctor's confirmation.
    """
    appt = _locked(appointment_id)
    by_doctor = user.role == User.ROLE_DOCTOR
    if by_doctor:
        ensure_own_appointment(user, appt)
    _reject_closed(appt, 'reschedule')
    if appt.status == A.STATUS_NO_SHOW:
        raise DomainError('Cannot reschedule a no-show appointment')
    if appt.checked_in_at:
        raise DomainError('Cannot reschedule: patient has already checked in')
    if appt.appointment_date == appointment_date and appt.time == time:
        raise DomainError('New time is the same as the current appointment time')
    if scheduled_datetime(appointment_date, time) < timezone.now():
        raise DomainError('Appointment date cannot be in the past')

    doctor = Doctor.objects.select_for_update().get(id=appt.doctor_id)
    _ensure_slot_free(appt.patient, doctor, appointment_date, time, exclude_id=appt.id)
    availability.ensure_slot_available(doctor, appointment_date, time, exclude_appointment_id=appt.id)

    previous = {'date': appt.appointment_date.isoformat(), 'time': appt.time, 'status': appt.status}
    appt.appointment_date = appointment_date
    appt.time = time
    if by_doctor and appt.status != A.STATUS_SCHEDULED:
        ensure_transition('Appointment', appt.status, A.STATUS_SCHEDULED)
        appt.status = A.STATUS_SCHEDULED
        appt.doctor_confirmed_at = timezone.now()
        appt.doctor_confirmed_by = user
    appt.save()
    audit.log_action(user=user, action=audit.UPDATE, object_type='Appointment', object_id=appt.id,
                     detail={'op': 'reschedule', 'from': previous,
                             'to': {'date': appointment_date.isoformat(), 'time': time, 'status': appt.status},
                             'reason': clean_text(reason)}, request=request)
    logger.info('appointment_rescheduled', appointment_id=appt.id, doctor_id=doctor.id)
    return appt


@transaction.atomic
def confirm_by_doctor(user, appointment_id, request=None) -> Appointment:
    appt = _locked(appointment_id)
    ensure_own_appointment(user, appt)
    if appt.status not in (A.STATUS_PENDING, A.STATUS_PENDING_DOCTOR_CONFIRMATION):
        raise DomainError(f'Only pending appointments can be confirmed (current status {appt.status})')
    ensure_transition('Appointment', appt.status, A.STATUS_SCHEDULED)
    previous = appt.status
    appt.status = A.STATUS_SCHEDULED
    appt.doctor_confirmed_at = timezone.now()
    appt.doctor_confirmed_by = user
    appt.save(update_fields=['status', 'doctor_confirmed_at', 'doctor_confirmed_by', 'updated_at'])
    audit.log_action(user=user, action=audit.UPDATE, object_type='Appointment', object_id=appt.id,
                     detail={'previousStatus': previous, 'newStatus': appt.status, 'op': 'doctor_confirm'}, request=request)
    return appt


@transaction.atomic
def reject_by_doctor(user, appointment_id, reason: str, request=None) -> Appointment:
    reason = clean_text(reason)
    appt = _locked(appointment_id)
    ensure_own_appointment(user, appt)
    if not reason:
        raise DomainError('Rejection reason is required')
    ensure_transition('Appointment', appt.status, A.STATUS_CANCELLED)
    previous = appt.status
    appt.status = A.STATUS_CANCELLED
    appt.doctor_rejection_reason = reason
    appt.save(update_fields=['status', 'doctor_rejection_reason', 'updated_at'])
    audit.log_action(user=user, action=audit.UPDATE, object_type='Appointment', object_id=appt.id,
                     detail={'previousStatus': previous, 'newStatus': appt.status, 'op': 'doctor_reject'}, request=request)
    return appt


@transaction.atomic
def check_in(user, appointment_id, notes: str = '', request=None) -> Appointment:
    appt = _locked(appointment_id)
    _reject_closed(appt, 'check in')
    if appt.status == A.STATUS_NO_SHOW:
        raise DomainError('Cannot check in an appointment marked as no-show')

    now = timezone.now()
    if appt.status == A.STATUS_SCHEDULED:
        # Repeat check-ins keep the first arrival time
        if not appt.checked_in_at:
            appt.checked_in_at = now
            appt.checked_in_by = user
            appt.save(update_fields=['checked_in_at', 'checked_in_by', 'updated_at'])
        audit.log_action(user=user, action=audit.VIEW, object_type='Appointment', object_id=appt.id,
                         detail={'op': 'check_in', 'alreadyCheckedIn': True}, request=request)
        return appt

    ensure_transition('Appointment', appt.status, A.STATUS_SCHEDULED)
    previous = appt.status
    late_by = int((now - scheduled_datetime(appt.appointment_date, appt.time)).total_seconds() // 60)
    appt.status = A.STATUS_SCHEDULED
    appt.checked_in_at = now
    appt.checked_in_by = user
    appt.late_arrival = late_by > 0
    appt.late_by_minutes = late_by if late_by > 0 else None
    appt.no_show = False
    appt.no_show_at = None
    if notes:
        appt.note = (appt.note + '\n' if appt.note else '') + clean_text(notes)
    appt.save()
    audit.log_action(user=user, action=audit.UPDATE, object_type='Appointment', object_id=appt.id,
                     detail={'op': 'check_in', 'previousStatus': previous, 'newStatus': appt.status,
                             'lateArrival': appt.late_arrival, 'lateByMinutes': appt.late_by_minutes}, request=request)
    return appt


@transaction.atomic
def start_consultation(user, appointment_id, doctor_notes: str = '', request=None) -> Consultation:
    appt = _locked(appointment_id)
    doctor = ensure_own_appointment(user, appt)
    _reject_closed(appt, 'start a consultation for')
    if appt.status == A.STATUS_NO_SHOW:
        raise DomainError('Cannot start a consultation for a no-show appointment')
    if appt.status != A.STATUS_SCHEDULED:
        ensure_transition('Appointment', appt.status, A.STATUS_SCHEDULED)
        appt.status = A.STATUS_SCHEDULED
        appt.save(update_fields=['status', 'updated_at'])

    consultation, created = Consultation.objects.get_or_create(appointment=appt, defaults={'doctor': doctor})
    if doctor_notes:
        consultation.doctor_notes = clean_text(doctor_notes)
        consultation.save(update_fields=['doctor_notes', 'updated_at'])
    audit.log_action(user=user, action=audit.CREATE if created else audit.VIEW, object_type='Consultation',
                     object_id=consultation.id, detail={'appointmentId': appt.id}, request=request)
    return consultation


@transaction.atomic
def save_consultation_draft(user, appointment_id, doctor_notes: str, version: str = '',
                            request=None) -> Consultation:
    """Save work-in-progress notes on a started consultation.

    ``version`` is the ``version`` value the client last read; a stale
    one means another session saved in between and answers a conflict.
    """
    appt = _locked(appointment_id)
    ensure_own_appointment(user, appt)
    consultation = Consultation.objects.select_for_update().filter(appointment=appt).first()
    if not consultation:
        raise DomainError('Consultation must be started before saving drafts')
    if consultation.completed_at or appt.status == A.STATUS_COMPLETED:
        raise AlreadyFinalized('Consultation is already completed')
    if version and version != consultation.updated_at.isoformat():
        raise Conflict('Consultation has been updated by another session. Refresh and try again.',
                       details={'currentVersion': consultation.updated_at.isoformat()})
    notes = clean_text(doctor_notes)
    if not notes:
        raise DomainError('Notes are required')

    consultation.doctor_notes = notes
    consultation.save(update_fields=['doctor_notes', 'updated_at'])
    audit.log_action(user=user, action=audit.UPDATE, object_type='Consultation', object_id=consultation.id,
                     detail={'op': 'draft', 'appointmentId': appt.id}, request=request)
    return consultation


@transaction.atomic
def complete_consultation(user, appointment_id, *, doctor_notes: str = '', outcome: str = '',
                          outcome_type: str = '', request=None) -> Consultation:
    appt = _locked(appointment_id)
    doctor = ensure_own_appointment(user, appt)
    if appt.status == A.STATUS_CANCELLED:
        raise DomainError('Cannot complete a cancelled appointment')
    if appt.status == A.STATUS_COMPLETED:
        raise DomainError('Appointment is already completed')
    ensure_transition('Appointment', appt.status, A.STATUS_COMPLETED)

    now = timezone.now()
    consultation, _ = Consultation.objects.get_or_create(appointment=appt, defaults={'doctor': doctor, 'started_at': now})
    consultation.completed_at = now
    if doctor_notes:
        consultation.doctor_notes = clean_text(doctor_notes)
    consultation.outcome = clean_text(outcome)
    consultation.outcome_type = outcome_type or ''
    consultation.save()

    appt.status = A.STATUS_COMPLETED
    appt.save(update_fields=['status', 'updated_at'])
    audit.log_action(user=user, action=audit.UPDATE, object_type='Appointment', object_id=appt.id,
                     detail={'op': 'complete_consultation', 'newStatus': appt.status,
                             'outcomeType': consultation.outcome_type}, request=request)
    return consultation


@transaction.atomic
def mark_no_show(user, appointment_id, reason: str, notes: str = '', request=None) -> Appointment:
    appt = _locked(appointment_id)
    if appt.status == A.STATUS_CANCELLED:
        raise DomainError('Cannot mark a cancelled appointment as no-show')
    if appt.status == A.STATUS_COMPLETED:
        raise DomainError('Cannot mark a completed appointment as no-show')
    reason = clean_text(reason)
    if not reason:
        raise DomainError('No-show reason is required')
    if appt.checked_in_at:
        raise DomainError('Cannot mark appointment as no-show: patient has already checked in')
    if appt.no_show:
        raise DomainError('Appointment is already marked as no-show')
    ensure_transition('Appointment', appt.status, A.STATUS_NO_SHOW)

    previous = appt.status
    appt.status = A.STATUS_NO_SHOW
    appt.no_show = True
    appt.no_show_at = timezone.now()
    appt.no_show_reason = reason
    if notes:
        appt.note = (appt.note + '\n' if appt.note else '') + clean_text(notes)
    appt.save()
    audit.log_action(user=user, action=audit.UPDATE, object_type='Appointment', object_id=appt.id,
                     detail={'op': 'no_show', 'previousStatus': previous, 'reason': reason}, request=request)
    return appt


@transaction.atomic
def cancel(user, appointment_id, reason: str, request=None) -> Appointment:
    reason = clean_text(reason)
    if not reason:
        raise DomainError('Cancellation reason is required')
    appt = _locked(appointment_id)
    ensure_transition('Appointment', appt.status, A.STATUS_CANCELLED)
    previous = appt.status
    appt.status = A.STATUS_CANCELLED
    appt.cancellation_reason = reason
    appt.save(update_fields=['status', 'cancellation_reason', 'updated_at'])
    audit.log_action(user=user, action=audit.UPDATE, object_type='Appointment', object_id=appt.id,
                     detail={'op': 'cancel', 'previousStatus': previous, 'reason': reason}, request=request)
    return appt


def format_appointment(a: Appointment) -> dict:
    return {
        'id': a.id,
        'patientId': a.patient_id,
        'patientName': a.patient.full_name if a.patient_id else None,
        'doctorId': a.doctor_id,
        'doctorName': a.doctor.name if a.doctor_id else None,
        'appointmentDate': a.appointment_date.isoformat(),
        'time': a.time,
        'status': a.status,
        'type': a.type,
        'reason': a.reason,
        'note': a.note,
        'checkedInAt': a.checked_in_at.isoformat() if a.checked_in_at else None,
        'lateArrival': a.late_arrival,
        'lateByMinutes': a.late_by_minutes,
        'doctorConfirmedAt': a.doctor_confirmed_at.isoformat() if a.doctor_confirmed_at else None,
        'noShow': a.no_show,
        'noShowReason': a.no_show_reason or None,
    }


def format_consultation(c: Consultation) -> dict:
    return {
        'id': c.id,
        'appointmentId': c.appointment_id,
        'doctorId': c.doctor_id,
        'startedAt': c.started_at.isoformat() if c.started_at else None,
        'completedAt': c.completed_at.isoformat() if c.completed_at else None,
        'doctorNotes': c.doctor_notes,
        'outcome': c.outcome,
        'outcomeType': c.outcome_type or None,
        'version': c.updated_at.isoformat() if c.updated_at else None,
    }
