"""
Django admin registrations for the clinic models.

Audit events are listed read-only: the model refuses updates and
deletes, so the admin offers neither.
"""
from django.contrib import admin

from .models import (
    Appointment,
    AuditEvent,
    CasePlan,
    ClinicalFormResponse,
    ConsentForm,
    Doctor,
    DoctorAvailability,
    IntakeSubmission,
    Patient,
    Payment,
    ScheduleBlock,
    SurgicalCase,
    Theater,
    TheaterBooking,
    User,
)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('id', 'username', 'role', 'status', 'is_active')
    list_filter = ('role', 'status')
    search_fields = ('username', 'first_name', 'last_name', 'email')


@admin.register(Doctor)
class DoctorAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'specialization', 'user')
    search_fields = ('name', 'specialization', 'user__username')


@admin.register(DoctorAvailability)
class DoctorAvailabilityAdmin(admin.ModelAdmin):
    list_display = ('doctor', 'weekday', 'start_time', 'end_time', 'is_available')
    list_filter = ('weekday', 'is_available')


@admin.register(ScheduleBlock)
class ScheduleBlockAdmin(admin.ModelAdmin):
    list_display = ('doctor', 'block_type', 'start_date', 'end_date', 'start_time', 'end_time')
    list_filter = ('block_type',)


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('file_number', 'first_name', 'last_name', 'gender', 'date_of_birth', 'phone')
    list_filter = ('gender',)
    search_fields = ('file_number', 'first_name', 'last_name', 'phone')


@admin.register(IntakeSubmission)
class IntakeSubmissionAdmin(admin.ModelAdmin):
    list_display = ('id', 'first_name', 'last_name', 'status', 'submitted_at')
    list_filter = ('status',)


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'doctor', 'appointment_date', 'time', 'status')
    list_filter = ('status', 'appointment_date')
    search_fields = ('patient__file_number', 'patient__last_name', 'doctor__name')


@admin.register(SurgicalCase)
class SurgicalCaseAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'primary_surgeon', 'procedure_name', 'urgency', 'status')
    list_filter = ('status', 'urgency')
    search_fields = ('patient__file_number', 'procedure_name')


@admin.register(CasePlan)
class CasePlanAdmin(admin.ModelAdmin):
    list_display = ('id', 'appointment', 'surgical_case', 'planned_anesthesia', 'readiness_status')
    list_filter = ('readiness_status',)


@admin.register(ConsentForm)
class ConsentFormAdmin(admin.ModelAdmin):
    list_display = ('id', 'surgical_case', 'type', 'status', 'signed_at')
    list_filter = ('type', 'status')


@admin.register(Theater)
class TheaterAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'type', 'is_active')


@admin.register(TheaterBooking)
class TheaterBookingAdmin(admin.ModelAdmin):
    list_display = ('id', 'theater', 'surgical_case', 'start_time', 'end_time', 'status')
    list_filter = ('status', 'theater')


@admin.register(ClinicalFormResponse)
class ClinicalFormResponseAdmin(admin.ModelAdmin):
    list_display = ('id', 'template_key', 'template_version', 'surgical_case', 'status', 'signed_at')
    list_filter = ('template_key', 'status')


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'total_amount', 'amount_paid', 'status', 'receipt_number')
    list_filter = ('status', 'payment_method')
    search_fields = ('receipt_number', 'patient__file_number')


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'action', 'object_type', 'object_id', 'user', 'ip_address')
    list_filter = ('action', 'object_type')
    search_fields = ('object_id', 'user__username')

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
