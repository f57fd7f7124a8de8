"""
Theater scheduling and the day-of-surgery milestones.

Booking moves a case from READY_FOR_SCHEDULING to SCHEDULED. After that
theater staff walk the case through IN_PREP, IN_THEATER, RECOVERY and
COMPLETED; the last three moves are gated on finalized nursing forms.
"""
from __future__ import annotations

from collections import OrderedDict
from datetime import date, datetime, time, timedelta

import structlog
from django.conf import settings
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound

from clinic.exceptions import ClinicalGateError, Conflict, DomainError
from clinic.models import SurgicalCase, Theater, TheaterBooking
from clinic.services import audit, clinical_forms
from clinic.services.workflow import ensure_transition

logger = structlog.get_logger(__name__)

S = SurgicalCase
ACTIVE_BOOKING_STATUSES = (TheaterBooking.STATUS_PROVISIONAL, TheaterBooking.STATUS_CONFIRMED)

# target status -> gate returning the list of blockers
GATES = {
    S.STATUS_IN_PREP: lambda case: [],
    S.STATUS_IN_THEATER: clinical_forms.preop_gate,
    S.STATUS_RECOVERY: clinical_forms.recovery_gate,
    S.STATUS_COMPLETED: clinical_forms.completion_gate,
}


def list_theaters(include_inactive: bool = False):
    qs = Theater.objects.order_by('name')
    return qs if include_inactive else qs.filter(is_active=True)


@transaction.atomic
def book(user, *, case_id, theater_id, start_time: datetime, end_time: datetime, request=None) -> TheaterBooking:
    if end_time <= start_time:
        raise DomainError('Booking end time must be after the start time')
    theater = Theater.objects.select_for_update().filter(id=theater_id).first()
    if not theater:
        raise NotFound('Theater not found')
    if not theater.is_active:
        raise DomainError(f'Theater {theater.name} is not active')
    case = SurgicalCase.objects.select_for_update().filter(id=case_id).first()
    if not case:
        raise NotFound('Surgical case not found')
    ensure_transition('SurgicalCase', case.status, S.STATUS_SCHEDULED)

    clash = (
        TheaterBooking.objects.filter(theater=theater, start_time__lt=end_time, end_time__gt=start_time)
        .exclude(status=TheaterBooking.STATUS_CANCELLED)
        .first()
    )
    if clash:
        raise Conflict(f'{theater.name} is already booked between '
                       f'{timezone.localtime(clash.start_time):%H:%M} and {timezone.localtime(clash.end_time):%H:%M}',
                       details={'bookingId': clash.id})

    booking = TheaterBooking.objects.create(
        theater=theater, surgical_case=case, start_time=start_time, end_time=end_time,
        status=TheaterBooking.STATUS_CONFIRMED, booked_by=user,
    )
    previous = case.status
    case.status = S.STATUS_SCHEDULED
    case.save(update_fields=['status', 'updated_at'])
    audit.log_action(user=user, action=audit.CREATE, object_type='TheaterBooking', object_id=booking.id,
                     detail={'surgicalCaseId': case.id, 'theaterId': theater.id,
                             'start': start_time.isoformat(), 'end': end_time.isoformat()}, request=request)
    audit.log_action(user=user, action=audit.CASE_TRANSITION, object_type='SurgicalCase', object_id=case.id,
                     detail={'previousStatus': previous, 'newStatus': case.status}, request=request)
    return booking


def transition_case(user, case_id, target: str, request=None) -> SurgicalCase:
    """Move a scheduled case to its next theater milestone.

    A blocked move is audited after the transaction has rolled back so
    the record of the attempt survives, then reported as a clinical
    gate failure.
    """
    if target not in GATES:
        raise DomainError(f'Unsupported theater action: {target}')

    with transaction.atomic():
        case = SurgicalCase.objects.select_for_update().filter(id=case_id).first()
        if not case:
            raise NotFound('Surgical case not found')
        ensure_transition('SurgicalCase', case.status, target)
        previous = case.status
        blockers = GATES[target](case)
        if not blockers:
            now = timezone.now()
            case.status = target
            fields = ['status', 'updated_at']
            if target == S.STATUS_IN_THEATER:
                case.wheels_in_at = now
                fields.append('wheels_in_at')
            elif target == S.STATUS_RECOVERY:
                case.wheels_out_at = now
                fields.append('wheels_out_at')
            case.save(update_fields=fields)
            if target == S.STATUS_COMPLETED:
                TheaterBooking.objects.filter(surgical_case=case, status__in=ACTIVE_BOOKING_STATUSES) \
                    .update(status=TheaterBooking.STATUS_COMPLETED)
            audit.log_action(user=user, action=audit.CASE_TRANSITION, object_type='SurgicalCase', object_id=case.id,
                             detail={'previousStatus': previous, 'newStatus': target}, request=request)
            logger.info('case_transition', case_id=case.id, previous=previous, new=target)
            return case

    audit.log_action(user=user, action=audit.CASE_TRANSITION_BLOCKED, object_type='SurgicalCase', object_id=case_id,
                     detail={'previousStatus': previous, 'targetStatus': target, 'blockers': blockers}, request=request)
    logger.info('case_transition_blocked', case_id=case_id, target=target, blockers=len(blockers))
    raise ClinicalGateError(f'Cannot move case to {target}', blockers)


def _minutes(delta: timedelta) -> float:
    return delta.total_seconds() / 60


def dayboard(day: date) -> dict:
    """Bookings for ``day`` grouped by theater, with a summary row."""
    tz = timezone.get_current_timezone()
    start = timezone.make_aware(datetime.combine(day, time.min), tz)
    end = start + timedelta(days=1)
    bookings = (
        TheaterBooking.objects.select_related('theater', 'surgical_case__patient', 'surgical_case__primary_surgeon')
        .filter(start_time__gte=start, start_time__lt=end)
        .exclude(status=TheaterBooking.STATUS_CANCELLED)
        .order_by('theater__name', 'start_time')
    )

    grace = timedelta(minutes=settings.THEATER_DELAY_GRACE_MINUTES)
    theaters: OrderedDict[str, dict] = OrderedDict()
    counts = {key: 0 for key in (S.STATUS_SCHEDULED, S.STATUS_IN_PREP, S.STATUS_IN_THEATER,
                                 S.STATUS_RECOVERY, S.STATUS_COMPLETED)}
    or_minutes = []
    delayed = 0
    utilization: dict[str, int] = {}

    for b in bookings:
        case = b.surgical_case
        entry = theaters.setdefault(b.theater.name, {'theaterId': b.theater_id, 'theaterName': b.theater.name, 'cases': []})
        entry['cases'].append({
            'bookingId': b.id,
            'caseId': case.id,
            'status': case.status,
            'patientName': case.patient.full_name,
            'procedureName': case.procedure_name,
            'surgeon': case.primary_surgeon.name,
            'startTime': b.start_time.isoformat(),
            'endTime': b.end_time.isoformat(),
            'wheelsInAt': case.wheels_in_at.isoformat() if case.wheels_in_at else None,
            'wheelsOutAt': case.wheels_out_at.isoformat() if case.wheels_out_at else None,
        })
        if case.status in counts:
            counts[case.status] += 1
        if case.wheels_in_at and case.wheels_out_at:
            or_minutes.append(_minutes(case.wheels_out_at - case.wheels_in_at))
        if case.wheels_in_at and case.wheels_in_at > b.start_time + grace:
            delayed += 1
        utilization[b.theater.name] = utilization.get(b.theater.name, 0) + int(_minutes(b.end_time - b.start_time))

    summary = {
        'totalCases': sum(len(t['cases']) for t in theaters.values()),
        'scheduled': counts[S.STATUS_SCHEDULED],
        'inPrep': counts[S.STATUS_IN_PREP],
        'inTheater': counts[S.STATUS_IN_THEATER],
        'inRecovery': counts[S.STATUS_RECOVERY],
        'completed': counts[S.STATUS_COMPLETED],
        'avgOrTimeMinutes': round(sum(or_minutes) / len(or_minutes), 1) if or_minutes else None,
        'delayedStartCount': delayed,
        'utilizationByTheater': utilization,
    }
    return {'date': day.isoformat(), 'theaters': list(theaters.values()), 'summary': summary}


def format_booking(b: TheaterBooking) -> dict:
    return {
        'id': b.id,
        'theaterId': b.theater_id,
        'surgicalCaseId': b.surgical_case_id,
        'startTime': b.start_time.isoformat(),
        'endTime': b.end_time.isoformat(),
        'status': b.status,
    }
