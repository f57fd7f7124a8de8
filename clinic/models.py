"""
Database models for the clinic operations backend.

These models capture the concepts the clinic works with: staff users
and their roles, patients and intake, appointments and consultations,
surgical cases with their plans, consents, photos and theater bookings,
structured clinical forms, billing and the append-only audit trail.
Status values are stored as upper-case strings so the JSON responses
can expose them verbatim.
"""
from __future__ import annotations

import uuid
from datetime import timedelta

from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.db import models
from django.utils import timezone


class User(AbstractUser):
    """Staff (or patient portal) account with a single role.

    ``status`` is the clinic's account lifecycle. Only ACTIVE users may
    log in or use a previously issued token.
    """
    ROLE_ADMIN = 'ADMIN'
    ROLE_DOCTOR = 'DOCTOR'
    ROLE_NURSE = 'NURSE'
    ROLE_FRONTDESK = 'FRONTDESK'
    ROLE_THEATER_TECHNICIAN = 'THEATER_TECHNICIAN'
    ROLE_CASHIER = 'CASHIER'
    ROLE_LAB_TECHNICIAN = 'LAB_TECHNICIAN'
    ROLE_PATIENT = 'PATIENT'
    ROLE_CHOICES = [
        (ROLE_ADMIN, 'Administrator'),
        (ROLE_DOCTOR, 'Doctor'),
        (ROLE_NURSE, 'Nurse'),
        (ROLE_FRONTDESK, 'Front desk'),
        (ROLE_THEATER_TECHNICIAN, 'Theater technician'),
        (ROLE_CASHIER, 'Cashier'),
        (ROLE_LAB_TECHNICIAN, 'Lab technician'),
        (ROLE_PATIENT, 'Patient'),
    ]

    STATUS_ACTIVE = 'ACTIVE'
    STATUS_INACTIVE = 'INACTIVE'
    STATUS_DORMANT = 'DORMANT'
    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_INACTIVE, 'Inactive'),
        (STATUS_DORMANT, 'Dormant'),
    ]

    role = models.CharField(max_length=24, choices=ROLE_CHOICES, default=ROLE_PATIENT, db_index=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True)
    phone = models.CharField(max_length=32, blank=True, default='')

    @property
    def is_account_active(self) -> bool:
        return self.is_active and self.status == self.STATUS_ACTIVE

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class Doctor(models.Model):
    """Clinical profile for a user with the DOCTOR role."""
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='doctor_profile')
    name = models.CharField(max_length=128)
    specialization = models.CharField(max_length=128, blank=True, default='')
    license_number = models.CharField(max_length=64, blank=True, default='')
    slot_minutes = models.PositiveSmallIntegerField(default=30)
    buffer_minutes = models.PositiveSmallIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"Dr. {self.name}"


class DoctorAvailability(models.Model):
    """Weekly working hours, one row per doctor and weekday (0 is Monday).

    ``breaks`` holds ``[{"startTime": "HH:MM", "endTime": "HH:MM", "reason": ...}]``
    inside the working hours. A doctor without any rows has not set up
    a schedule yet and is bookable at any time.
    """
    WEEKDAY_CHOICES = (
        (0, 'Monday'), (1, 'Tuesday'), (2, 'Wednesday'), (3, 'Thursday'),
        (4, 'Friday'), (5, 'Saturday'), (6, 'Sunday'),
    )

    doctor = models.ForeignKey(Doctor, on_delete=models.CASCADE, related_name='working_days')
    weekday = models.PositiveSmallIntegerField(choices=WEEKDAY_CHOICES)
    start_time = models.CharField(max_length=5)
    end_time = models.CharField(max_length=5)
    is_available = models.BooleanField(default=True)
    breaks = models.JSONField(default=list, blank=True)

    class Meta:
        ordering = ['weekday']
        constraints = [
            models.UniqueConstraint(fields=['doctor', 'weekday'], name='uniq_doctor_weekday'),
        ]

    def __str__(self) -> str:
        return f"{self.doctor_id} {self.get_weekday_display()} {self.start_time}-{self.end_time}"


class ScheduleBlock(models.Model):
    """Time a doctor cannot be booked: leave, surgery, training and so on.

    Without ``start_time``/``end_time`` the block covers whole days from
    ``start_date`` to ``end_date``; custom hours are single-day only.
    """
    TYPE_LEAVE = 'LEAVE'
    TYPE_SURGERY = 'SURGERY'
    TYPE_ADMIN = 'ADMIN'
    TYPE_EMERGENCY = 'EMERGENCY'
    TYPE_CONFERENCE = 'CONFERENCE'
    TYPE_BURNOUT_PROTECTION = 'BURNOUT_PROTECTION'
    TYPE_TRAINING = 'TRAINING'
    TYPE_OTHER = 'OTHER'
    TYPE_CHOICES = (
        (TYPE_LEAVE, 'Leave'),
        (TYPE_SURGERY, 'Surgery'),
        (TYPE_ADMIN, 'Admin'),
        (TYPE_EMERGENCY, 'Emergency'),
        (TYPE_CONFERENCE, 'Conference'),
        (TYPE_BURNOUT_PROTECTION, 'Burnout protection'),
        (TYPE_TRAINING, 'Training'),
        (TYPE_OTHER, 'Other'),
    )

    doctor = models.ForeignKey(Doctor, on_delete=models.CASCADE, related_name='schedule_blocks')
    start_date = models.DateField()
    end_date = models.DateField()
    start_time = models.CharField(max_length=5, blank=True, default='')
    end_time = models.CharField(max_length=5, blank=True, default='')
    block_type = models.CharField(max_length=24, choices=TYPE_CHOICES)
    reason = models.TextField(blank=True, default='')
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [models.Index(fields=['doctor', 'start_date', 'end_date'])]

    @property
    def is_full_day(self) -> bool:
        return not (self.start_time and self.end_time)

    def __str__(self) -> str:
        return f"{self.block_type} block {self.start_date}..{self.end_date} for doctor {self.doctor_id}"


class Patient(models.Model):
    GENDER_MALE = 'MALE'
    GENDER_FEMALE = 'FEMALE'
    GENDER_CHOICES = ((GENDER_MALE, 'Male'), (GENDER_FEMALE, 'Female'))

    file_number = models.CharField(max_length=16, unique=True)
    user = models.OneToOneField(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='patient_profile')
    first_name = models.CharField(max_length=64)
    last_name = models.CharField(max_length=64)
    date_of_birth = models.DateField()
    gender = models.CharField(max_length=8, choices=GENDER_CHOICES)
    phone = models.CharField(max_length=32)
    email = models.EmailField(blank=True, default='')
    address = models.CharField(max_length=255, blank=True, default='')
    emergency_contact_name = models.CharField(max_length=128, blank=True, default='')
    emergency_contact_number = models.CharField(max_length=32, blank=True, default='')
    relation = models.CharField(max_length=64, blank=True, default='')
    allergies = models.TextField(blank=True, default='')
    medical_history = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['last_name', 'first_name']),
            models.Index(fields=['created_at']),
        ]

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __str__(self) -> str:
        return f"{self.file_number} {self.full_name}"


def _new_session_id() -> str:
    return uuid.uuid4().hex


def _intake_expiry():
    return timezone.now() + timedelta(minutes=settings.INTAKE_SESSION_MINUTES)


class IntakeSession(models.Model):
    """A short-lived link handed to a walk-in patient to fill in their details."""
    STATUS_ACTIVE = 'ACTIVE'
    STATUS_SUBMITTED = 'SUBMITTED'
    STATUS_CONFIRMED = 'CONFIRMED'
    STATUS_EXPIRED = 'EXPIRED'
    STATUS_CHOICES = (
        (STATUS_ACTIVE, 'Active'),
        (STATUS_SUBMITTED, 'Submitted'),
        (STATUS_CONFIRMED, 'Confirmed'),
        (STATUS_EXPIRED, 'Expired'),
    )

    session_id = models.CharField(max_length=32, unique=True, default=_new_session_id, editable=False)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_ACTIVE)
    expires_at = models.DateTimeField(default=_intake_expiry)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='intake_sessions')
    created_at = models.DateTimeField(auto_now_add=True)

    def is_expired(self, now=None) -> bool:
        return (now or timezone.now()) >= self.expires_at

    def __str__(self) -> str:
        return f"intake {self.session_id} ({self.status})"


class IntakeSubmission(models.Model):
    STATUS_PENDING = 'PENDING'
    STATUS_CONFIRMED = 'CONFIRMED'
    STATUS_REJECTED = 'REJECTED'
    STATUS_CHOICES = (
        (STATUS_PENDING, 'Pending'),
        (STATUS_CONFIRMED, 'Confirmed'),
        (STATUS_REJECTED, 'Rejected'),
    )

    session = models.OneToOneField(IntakeSession, on_delete=models.CASCADE, related_name='submission')
    first_name = models.CharField(max_length=64)
    last_name = models.CharField(max_length=64)
    date_of_birth = models.DateField()
    gender = models.CharField(max_length=8, choices=Patient.GENDER_CHOICES)
    phone = models.CharField(max_length=32)
    email = models.EmailField(blank=True, default='')
    address = models.CharField(max_length=255, blank=True, default='')
    emergency_contact_name = models.CharField(max_length=128, blank=True, default='')
    emergency_contact_number = models.CharField(max_length=32, blank=True, default='')
    relation = models.CharField(max_length=64, blank=True, default='')
    allergies = models.TextField(blank=True, default='')
    medical_history = models.TextField(blank=True, default='')
    privacy_consent = models.BooleanField(default=False)
    service_consent = models.BooleanField(default=False)
    medical_consent = models.BooleanField(default=False)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    rejection_reason = models.TextField(blank=True, default='')
    created_patient = models.OneToOneField(Patient, on_delete=models.SET_NULL, null=True, blank=True, related_name='intake_submission')
    confirmed_at = models.DateTimeField(null=True, blank=True)
    confirmed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    submitted_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"intake submission {self.session.session_id} ({self.status})"


class Appointment(models.Model):
    STATUS_PENDING = 'PENDING'
    STATUS_PENDING_DOCTOR_CONFIRMATION = 'PENDING_DOCTOR_CONFIRMATION'
    STATUS_CONFIRMED = 'CONFIRMED'
    STATUS_SCHEDULED = 'SCHEDULED'
    STATUS_CANCELLED = 'CANCELLED'
    STATUS_COMPLETED = 'COMPLETED'
    STATUS_NO_SHOW = 'NO_SHOW'
    STATUS_CHOICES = (
        (STATUS_PENDING, 'Pending'),
        (STATUS_PENDING_DOCTOR_CONFIRMATION, 'Pending doctor confirmation'),
        (STATUS_CONFIRMED, 'Confirmed'),
        (STATUS_SCHEDULED, 'Scheduled'),
        (STATUS_CANCELLED, 'Cancelled'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_NO_SHOW, 'No show'),
    )

    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='appointments')
    doctor = models.ForeignKey(Doctor, on_delete=models.CASCADE, related_name='appointments')
    appointment_date = models.DateField()
    time = models.CharField(max_length=5, help_text="HH:MM, clinic local time")
    status = models.CharField(max_length=32, choices=STATUS_CHOICES, default=STATUS_PENDING)
    type = models.CharField(max_length=64, default='Consultation')
    reason = models.TextField(blank=True, default='')
    note = models.TextField(blank=True, default='')

    checked_in_at = models.DateTimeField(null=True, blank=True)
    checked_in_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    late_arrival = models.BooleanField(default=False)
    late_by_minutes = models.PositiveIntegerField(null=True, blank=True)

    doctor_confirmed_at = models.DateTimeField(null=True, blank=True)
    doctor_confirmed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    doctor_rejection_reason = models.TextField(blank=True, default='')

    no_show = models.BooleanField(default=False)
    no_show_at = models.DateTimeField(null=True, blank=True)
    no_show_reason = models.TextField(blank=True, default='')
    cancellation_reason = models.TextField(blank=True, default='')

    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['appointment_date', 'status']),
            models.Index(fields=['doctor', 'appointment_date', 'time']),
            models.Index(fields=['patient', 'appointment_date', 'time']),
        ]

    def __str__(self) -> str:
        return f"appointment {self.id} {self.appointment_date} {self.time} ({self.status})"


class Consultation(models.Model):
    appointment = models.OneToOneField(Appointment, on_delete=models.CASCADE, related_name='consultation')
    doctor = models.ForeignKey(Doctor, on_delete=models.CASCADE, related_name='consultations')
    started_at = models.DateTimeField(default=timezone.now)
    completed_at = models.DateTimeField(null=True, blank=True)
    doctor_notes = models.TextField(blank=True, default='')
    outcome = models.TextField(blank=True, default='')
    outcome_type = models.CharField(max_length=48, blank=True, default='')
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"consultation for appointment {self.appointment_id}"


class SurgicalCase(models.Model):
    URGENCY_ELECTIVE = 'ELECTIVE'
    URGENCY_URGENT = 'URGENT'
    URGENCY_EMERGENCY = 'EMERGENCY'
    URGENCY_CHOICES = (
        (URGENCY_ELECTIVE, 'Elective'),
        (URGENCY_URGENT, 'Urgent'),
        (URGENCY_EMERGENCY, 'Emergency'),
    )

    STATUS_DRAFT = 'DRAFT'
    STATUS_PLANNING = 'PLANNING'
    STATUS_READY_FOR_SCHEDULING = 'READY_FOR_SCHEDULING'
    STATUS_SCHEDULED = 'SCHEDULED'
    STATUS_IN_PREP = 'IN_PREP'
    STATUS_IN_THEATER = 'IN_THEATER'
    STATUS_RECOVERY = 'RECOVERY'
    STATUS_COMPLETED = 'COMPLETED'
    STATUS_CANCELLED = 'CANCELLED'
    STATUS_CHOICES = (
        (STATUS_DRAFT, 'Draft'),
        (STATUS_PLANNING, 'Planning'),
        (STATUS_READY_FOR_SCHEDULING, 'Ready for scheduling'),
        (STATUS_SCHEDULED, 'Scheduled'),
        (STATUS_IN_PREP, 'In prep'),
        (STATUS_IN_THEATER, 'In theater'),
        (STATUS_RECOVERY, 'Recovery'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    )

    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='surgical_cases')
    primary_surgeon = models.ForeignKey(Doctor, on_delete=models.PROTECT, related_name='surgical_cases')
    consultation = models.ForeignKey(Consultation, on_delete=models.SET_NULL, null=True, blank=True, related_name='surgical_cases')
    urgency = models.CharField(max_length=16, choices=URGENCY_CHOICES, default=URGENCY_ELECTIVE)
    status = models.CharField(max_length=24, choices=STATUS_CHOICES, default=STATUS_DRAFT, db_index=True)
    diagnosis = models.TextField(blank=True, default='')
    procedure_name = models.CharField(max_length=255, blank=True, default='')
    side = models.CharField(max_length=32, blank=True, default='')
    cancellation_reason = models.TextField(blank=True, default='')
    wheels_in_at = models.DateTimeField(null=True, blank=True)
    wheels_out_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"case {self.id} {self.procedure_name or '-'} ({self.status})"


class CasePlan(models.Model):
    ANESTHESIA_CHOICES = (
        ('GENERAL', 'General'),
        ('REGIONAL', 'Regional'),
        ('LOCAL', 'Local'),
        ('SEDATION', 'Sedation'),
        ('TIVA', 'TIVA'),
        ('MAC', 'MAC'),
    )
    READINESS_CHOICES = (
        ('NOT_STARTED', 'Not started'),
        ('IN_PROGRESS', 'In progress'),
        ('PENDING_LABS', 'Pending labs'),
        ('PENDING_CONSENT', 'Pending consent'),
        ('PENDING_REVIEW', 'Pending review'),
        ('READY', 'Ready'),
        ('ON_HOLD', 'On hold'),
    )

    appointment = models.OneToOneField(Appointment, on_delete=models.CASCADE, related_name='case_plan')
    # Reverse accessor gives ``surgical_case.case_plan``; both sides share this column.
    surgical_case = models.OneToOneField(SurgicalCase, on_delete=models.SET_NULL, null=True, blank=True, related_name='case_plan')
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='case_plans')
    doctor = models.ForeignKey(Doctor, on_delete=models.CASCADE, related_name='case_plans')
    procedure_plan = models.TextField(blank=True, default='')
    risk_factors = models.TextField(blank=True, default='')
    pre_op_notes = models.TextField(blank=True, default='')
    implant_details = models.TextField(blank=True, default='')
    planned_anesthesia = models.CharField(max_length=16, choices=ANESTHESIA_CHOICES, blank=True, default='')
    special_instructions = models.TextField(blank=True, default='')
    readiness_status = models.CharField(max_length=16, choices=READINESS_CHOICES, default='NOT_STARTED')
    ready_for_surgery = models.BooleanField(default=False)
    estimated_duration_minutes = models.PositiveIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"case plan {self.id} (appointment {self.appointment_id})"


class ConsentForm(models.Model):
    TYPE_CHOICES = (
        ('GENERAL_PROCEDURE', 'General procedure'),
        ('ANESTHESIA', 'Anesthesia'),
        ('BLOOD_TRANSFUSION', 'Blood transfusion'),
        ('PHOTOGRAPHY', 'Photography'),
        ('SPECIAL_PROCEDURE', 'Special procedure'),
    )
    STATUS_PENDING_SIGNATURE = 'PENDING_SIGNATURE'
    STATUS_SIGNED = 'SIGNED'
    STATUS_REVOKED = 'REVOKED'
    STATUS_CHOICES = (
        (STATUS_PENDING_SIGNATURE, 'Pending signature'),
        (STATUS_SIGNED, 'Signed'),
        (STATUS_REVOKED, 'Revoked'),
    )

    surgical_case = models.ForeignKey(SurgicalCase, on_delete=models.CASCADE, related_name='consents')
    type = models.CharField(max_length=24, choices=TYPE_CHOICES)
    title = models.CharField(max_length=255)
    status = models.CharField(max_length=24, choices=STATUS_CHOICES, default=STATUS_PENDING_SIGNATURE)
    signed_at = models.DateTimeField(null=True, blank=True)
    signed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"consent {self.type} case={self.surgical_case_id} ({self.status})"


class CasePhoto(models.Model):
    TIMEPOINT_PRE_OP = 'PRE_OP'
    TIMEPOINT_CHOICES = (
        (TIMEPOINT_PRE_OP, 'Pre-op'),
        ('INTRA_OP', 'Intra-op'),
        ('POST_OP', 'Post-op'),
    )

    surgical_case = models.ForeignKey(SurgicalCase, on_delete=models.CASCADE, related_name='photos')
    timepoint = models.CharField(max_length=16, choices=TIMEPOINT_CHOICES)
    image_url = models.URLField(max_length=512)
    description = models.CharField(max_length=255, blank=True, default='')
    taken_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"photo {self.timepoint} case={self.surgical_case_id}"


class Theater(models.Model):
    name = models.CharField(max_length=64, unique=True)
    type = models.CharField(max_length=32, blank=True, default='GENERAL')
    is_active = models.BooleanField(default=True)

    def __str__(self) -> str:
        return self.name


class TheaterBooking(models.Model):
    STATUS_PROVISIONAL = 'PROVISIONAL'
    STATUS_CONFIRMED = 'CONFIRMED'
    STATUS_CANCELLED = 'CANCELLED'
    STATUS_COMPLETED = 'COMPLETED'
    STATUS_CHOICES = (
        (STATUS_PROVISIONAL, 'Provisional'),
        (STATUS_CONFIRMED, 'Confirmed'),
        (STATUS_CANCELLED, 'Cancelled'),
        (STATUS_COMPLETED, 'Completed'),
    )

    theater = models.ForeignKey(Theater, on_delete=models.PROTECT, related_name='bookings')
    surgical_case = models.ForeignKey(SurgicalCase, on_delete=models.CASCADE, related_name='bookings')
    start_time = models.DateTimeField()
    end_time = models.DateTimeField()
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_CONFIRMED)
    booked_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['theater', 'start_time', 'end_time']),
        ]

    def __str__(self) -> str:
        return f"booking {self.theater_id} {self.start_time:%F %H:%M}-{self.end_time:%H:%M}"


class ClinicalFormResponse(models.Model):
    """One structured clinical form per template version per surgical case."""
    STATUS_DRAFT = 'DRAFT'
    STATUS_FINAL = 'FINAL'
    STATUS_CHOICES = ((STATUS_DRAFT, 'Draft'), (STATUS_FINAL, 'Final'))

    template_key = models.CharField(max_length=64)
    template_version = models.PositiveIntegerField(default=1)
    surgical_case = models.ForeignKey(SurgicalCase, on_delete=models.CASCADE, related_name='clinical_forms')
    status = models.CharField(max_length=8, choices=STATUS_CHOICES, default=STATUS_DRAFT)
    data = models.JSONField(default=dict, blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    updated_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    signed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    signed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['template_key', 'template_version', 'surgical_case'],
                name='uniq_clinical_form_per_case',
            ),
        ]

    @property
    def is_final(self) -> bool:
        return self.status == self.STATUS_FINAL

    def __str__(self) -> str:
        return f"{self.template_key} v{self.template_version} case={self.surgical_case_id} ({self.status})"


class Payment(models.Model):
    METHOD_CHOICES = (
        ('CASH', 'Cash'),
        ('CARD', 'Card'),
        ('MOBILE_MONEY', 'Mobile money'),
        ('BANK_TRANSFER', 'Bank transfer'),
    )
    STATUS_UNPAID = 'UNPAID'
    STATUS_PART = 'PART'
    STATUS_PAID = 'PAID'
    STATUS_CHOICES = (
        (STATUS_UNPAID, 'Unpaid'),
        (STATUS_PART, 'Part paid'),
        (STATUS_PAID, 'Paid'),
    )

    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='payments')
    appointment = models.OneToOneField(Appointment, on_delete=models.SET_NULL, null=True, blank=True, related_name='payment')
    surgical_case = models.ForeignKey(SurgicalCase, on_delete=models.SET_NULL, null=True, blank=True, related_name='payments')
    bill_date = models.DateField(default=timezone.localdate)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    amount_paid = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    payment_method = models.CharField(max_length=16, choices=METHOD_CHOICES, blank=True, default='')
    status = models.CharField(max_length=8, choices=STATUS_CHOICES, default=STATUS_UNPAID, db_index=True)
    receipt_number = models.CharField(max_length=32, blank=True, null=True, unique=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def amount_due(self):
        return self.total_amount - self.discount

    @property
    def balance(self):
        return self.amount_due - self.amount_paid

    def __str__(self) -> str:
        return f"payment {self.id} patient={self.patient_id} ({self.status})"


class AuditEventQuerySet(models.QuerySet):
    def update(self, **kwargs):
        raise PermissionError('audit events are immutable')

    def delete(self):
        raise PermissionError('audit events cannot be deleted')


class AuditEvent(models.Model):
    """Append-only audit trail entry.

    Rows are written once through :func:`clinic.services.audit.log_action`
    and never changed afterwards: saving an existing row, deleting a row
    and bulk updates/deletes through the manager all raise
    ``PermissionError``. Users with audit history cannot be deleted;
    deactivate them through their status instead.
    """
    user = models.ForeignKey(User, on_delete=models.PROTECT, null=True, blank=True, related_name='+')
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.CharField(max_length=64, blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(blank=True, null=True)
    user_agent = models.CharField(max_length=255, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    objects = AuditEventQuerySet.as_manager()

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at']),
            models.Index(fields=['object_type', 'object_id', 'created_at']),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise PermissionError('audit events are immutable')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise PermissionError('audit events cannot be deleted')

    def __str__(self) -> str:
        return f"{self.action}:{self.object_type}:{self.object_id}@{self.created_at:%F %T}"
