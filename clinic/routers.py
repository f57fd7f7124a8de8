"""
URL mappings for the clinic API.

Paths carry no trailing slashes (``APPEND_SLASH`` is off). Action
endpoints hang off the resource they change, e.g.
``api/appointments/<id>/check-in``.
"""
from django.urls import include, path

from .auth_views import login_view, logout_view, me_view, refresh_view
from .views import (
    appointments, audit, availability, billing, case_plans, clinical_forms, dashboard, health, intake,
    patients, surgical_cases, theater, users,
)

urlpatterns = [
    path('metrics', include('django_prometheus.urls')),
    path('healthz', health.healthz),

    # Authentication
    path('api/auth/login', login_view),
    path('api/auth/refresh', refresh_view),
    path('api/auth/logout', logout_view),
    path('api/auth/me', me_view),

    # Staff accounts, doctors and their schedules
    path('api/admin/users', users.list_users),
    path('api/admin/users/create', users.create_user),
    path('api/admin/users/<int:pk>/status', users.set_user_status),
    path('api/doctors', users.list_doctors),
    path('api/doctors/create', users.create_doctor),
    path('api/doctors/<int:pk>/availability', availability.get_availability),
    path('api/doctors/<int:pk>/availability/set', availability.set_availability),
    path('api/doctors/<int:pk>/blocks', availability.list_blocks),
    path('api/doctors/<int:pk>/blocks/create', availability.add_block),
    path('api/doctors/<int:pk>/slots', availability.available_slots),

    # Patients and intake
    path('api/patients', patients.list_patients),
    path('api/patients/register', patients.register_patient),
    path('api/patients/<int:pk>', patients.patient_detail),
    path('api/patients/<int:pk>/update', patients.update_patient),
    path('api/intake/sessions', intake.start_intake),
    path('api/intake/submit', intake.submit_intake),
    path('api/intake/pending', intake.pending_intakes),
    path('api/intake/<str:session_id>/confirm', intake.confirm_intake),
    path('api/intake/<str:session_id>/reject', intake.reject_intake),

    # Appointments
    path('api/appointments', appointments.list_appointments),
    path('api/appointments/today', appointments.today),
    path('api/appointments/create', appointments.create_appointment),
    path('api/appointments/<int:pk>/reschedule', appointments.reschedule_appointment),
    path('api/appointments/<int:pk>/confirm', appointments.confirm_appointment),
    path('api/appointments/<int:pk>/reject', appointments.reject_appointment),
    path('api/appointments/<int:pk>/check-in', appointments.check_in),
    path('api/appointments/<int:pk>/consultation/start', appointments.start_consultation),
    path('api/appointments/<int:pk>/consultation/draft', appointments.save_consultation_draft),
    path('api/appointments/<int:pk>/consultation/complete', appointments.complete_consultation),
    path('api/appointments/<int:pk>/no-show', appointments.mark_no_show),
    path('api/appointments/<int:pk>/cancel', appointments.cancel_appointment),

    # Case plans and surgical cases
    path('api/case-plans', case_plans.create_case_plan),
    path('api/case-plans/by-appointment/<int:appointment_id>', case_plans.case_plan_for_appointment),
    path('api/surgical-cases', surgical_cases.list_cases),
    path('api/surgical-cases/<int:pk>', surgical_cases.case_detail),
    path('api/surgical-cases/<int:pk>/plan', surgical_cases.update_plan),
    path('api/surgical-cases/<int:pk>/readiness', surgical_cases.readiness),
    path('api/surgical-cases/<int:pk>/mark-ready', surgical_cases.mark_ready),
    path('api/surgical-cases/<int:pk>/consents', surgical_cases.create_consent),
    path('api/surgical-cases/<int:pk>/consents/<int:consent_id>/sign', surgical_cases.sign_consent),
    path('api/surgical-cases/<int:pk>/consents/<int:consent_id>/revoke', surgical_cases.revoke_consent),
    path('api/surgical-cases/<int:pk>/photos', surgical_cases.add_photo),
    path('api/surgical-cases/<int:pk>/cancel', surgical_cases.cancel_case),
    path('api/surgical-cases/<int:pk>/transition', theater.transition_case),

    # Clinical forms
    path('api/surgical-cases/<int:pk>/forms/<slug:slug>', clinical_forms.get_form),
    path('api/surgical-cases/<int:pk>/forms/<slug:slug>/draft', clinical_forms.save_draft),
    path('api/surgical-cases/<int:pk>/forms/<slug:slug>/finalize', clinical_forms.finalize),

    # Theater
    path('api/theaters', theater.list_theaters),
    path('api/theater/bookings', theater.book_theater),
    path('api/theater/dayboard', theater.dayboard),

    # Billing
    path('api/billing/bills', billing.list_bills),
    path('api/billing/bills/create', billing.create_bill),
    path('api/billing/bills/<int:pk>/pay', billing.record_payment),

    # Dashboards and audit
    path('api/admin/dashboard', dashboard.admin_dashboard),
    path('api/dashboard/appointment-trends', dashboard.appointment_trends),
    path('api/dashboard/intake-counts', dashboard.intake_counts),
    path('api/admin/audit', audit.audit_trail),
]
