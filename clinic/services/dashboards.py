"""
Read models behind the dashboards.

Admin statistics are cached for ``DASHBOARD_CACHE_SECONDS`` and can be
warmed ahead of time with ``manage.py refresh_caches``.
"""
from datetime import timedelta
from typing import Optional

from django.conf import settings
from django.core.cache import cache
from django.db.models import Count
from django.db.models.functions import TruncDate
from django.utils import timezone

from clinic.models import (
    Appointment, AuditEvent, ClinicalFormResponse, Doctor, IntakeSession, IntakeSubmission, Patient,
    SurgicalCase, User,
)
from clinic.services.clinical_forms import PREOP_WARD

ADMIN_STATS_KEY = 'dashboard:admin-stats'
OPEN_APPOINTMENT_STATUSES = (Appointment.STATUS_PENDING, Appointment.STATUS_SCHEDULED)
MAX_TREND_DAYS = 365


def compute_admin_stats() -> dict:
    today = timezone.localdate()
    active_users = User.objects.filter(status=User.STATUS_ACTIVE, is_active=True)
    open_appts = Appointment.objects.filter(status__in=OPEN_APPOINTMENT_STATUSES)
    preop_done = ClinicalFormResponse.objects.filter(
        template_key=PREOP_WARD.key, status=ClinicalFormResponse.STATUS_FINAL,
    ).values('surgical_case_id')
    return {
        'totalPatients': Patient.objects.count(),
        'activeDoctors': Doctor.objects.filter(user__in=active_users).count(),
        'activeNurses': active_users.filter(role=User.ROLE_NURSE).count(),
        'activeFrontdesk': active_users.filter(role=User.ROLE_FRONTDESK).count(),
        'todayAppointments': open_appts.filter(appointment_date=today).count(),
        'upcomingAppointments': open_appts.filter(appointment_date__gt=today).count(),
        'pendingPreOp': SurgicalCase.objects.filter(
            status__in=[SurgicalCase.STATUS_SCHEDULED, SurgicalCase.STATUS_IN_PREP],
        ).exclude(id__in=preop_done).count(),
        'completedLast30Days': Appointment.objects.filter(
            status=Appointment.STATUS_COMPLETED, appointment_date__gte=today - timedelta(days=30),
        ).count(),
        'pendingIntakes': IntakeSubmission.objects.filter(status=IntakeSubmission.STATUS_PENDING).count(),
        'generatedAt': timezone.now().isoformat(),
    }


def admin_stats(refresh: bool = False) -> dict:
    stats = None if refresh else cache.get(ADMIN_STATS_KEY)
    if stats is None:
        stats = compute_admin_stats()
        cache.set(ADMIN_STATS_KEY, stats, settings.DASHBOARD_CACHE_SECONDS)
    return stats


def appointment_trends(days: int = 30, doctor: Optional[Doctor] = None) -> list[dict]:
    """Appointment counts per day over the last ``days`` days, split by status."""
    today = timezone.localdate()
    start = today - timedelta(days=days - 1)
    qs = Appointment.objects.filter(appointment_date__gte=start, appointment_date__lte=today)
    if doctor is not None:
        qs = qs.filter(doctor=doctor)
    rows = qs.values('appointment_date', 'status').annotate(count=Count('id')).order_by('appointment_date')

    by_day = {start + timedelta(days=i): {} for i in range(days)}
    for row in rows:
        by_day[row['appointment_date']][row['status']] = row['count']
    return [
        {'date': day.isoformat(), 'total': sum(statuses.values()), 'byStatus': statuses}
        for day, statuses in by_day.items()
    ]


def intake_counts(days: int = 30) -> dict:
    since = timezone.now() - timedelta(days=days)
    by_status = {
        row['status']: row['count']
        for row in IntakeSubmission.objects.values('status').annotate(count=Count('id'))
    }
    sessions = (
        IntakeSession.objects.filter(created_at__gte=since)
        .annotate(day=TruncDate('created_at'))
        .values('day')
        .annotate(count=Count('id'))
        .order_by('day')
    )
    return {
        'submissionsByStatus': {s: by_status.get(s, 0) for s, _ in IntakeSubmission.STATUS_CHOICES},
        'sessionsPerDay': [{'date': row['day'].isoformat(), 'count': row['count']} for row in sessions],
    }


def todays_appointments(doctor: Optional[Doctor] = None):
    qs = (
        Appointment.objects.select_related('patient', 'doctor')
        .filter(appointment_date=timezone.localdate())
        .order_by('time')
    )
    if doctor is not None:
        qs = qs.filter(doctor=doctor)
    return qs


def audit_events(*, object_type=None, object_id=None, action=None, user_id=None):
    qs = AuditEvent.objects.select_related('user').order_by('-created_at', '-id')
    if object_type:
        qs = qs.filter(object_type=object_type)
    if object_id:
        qs = qs.filter(object_id=str(object_id))
    if action:
        qs = qs.filter(action=action)
    if user_id:
        qs = qs.filter(user_id=user_id)
    return qs


def format_audit_event(e: AuditEvent) -> dict:
    return {
        'id': e.id,
        'action': e.action,
        'objectType': e.object_type,
        'objectId': e.object_id,
        'userId': e.user_id,
        'username': e.user.username if e.user_id else None,
        'detail': e.detail,
        'ipAddress': e.ip_address,
        'createdAt': e.created_at.isoformat(),
    }
