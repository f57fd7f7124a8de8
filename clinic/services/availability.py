"""
Doctor availability: weekly hours, schedule blocks and bookable slots.

Working hours and breaks live on :class:`DoctorAvailability` rows;
schedule blocks (leave, surgery, training) take precedence over them.
Every slot is ``Doctor.slot_minutes`` long and a new one starts every
``slot_minutes + buffer_minutes``. Blocks always apply, but a doctor
who never set up weekly hours is bookable at any time of day.
"""
from __future__ import annotations

from datetime import date
from typing import List, Optional

import structlog
from django.db import transaction
from django.utils import timezone

from clinic.exceptions import Conflict, DomainError, SlotUnavailable
from clinic.models import Appointment, Doctor, DoctorAvailability, ScheduleBlock
from clinic.services import audit
from clinic.services.patients import clean_text

logger = structlog.get_logger(__name__)

WEEKDAYS = dict(DoctorAvailability.WEEKDAY_CHOICES)


def to_minutes(hhmm: str) -> int:
    hours, minutes = (int(x) for x in hhmm.split(':'))
    return hours * 60 + minutes


def to_hhmm(minutes: int) -> str:
    return f'{minutes // 60:02d}:{minutes % 60:02d}'


def overlaps(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    return start_a < end_b and start_b < end_a


def _check_range(start: str, end: str, label: str) -> None:
    if to_minutes(end) <= to_minutes(start):
        raise DomainError(f'End time must be after start time for {label}',
                          details={'startTime': start, 'endTime': end})


def blocks_on(doctor: Doctor, day: date):
    return ScheduleBlock.objects.filter(doctor=doctor, start_date__lte=day, end_date__gte=day)


def appointments_on(doctor: Doctor, day: date, exclude_appointment_id=None):
    qs = (Appointment.objects.filter(doctor=doctor, appointment_date=day)
          .exclude(status=Appointment.STATUS_CANCELLED))
    if exclude_appointment_id is not None:
        qs = qs.exclude(id=exclude_appointment_id)
    return qs


@transaction.atomic
def set_availability(user, doctor: Doctor, working_days: list, *, slot_minutes: Optional[int] = None,
                     buffer_minutes: Optional[int] = None, request=None) -> Doctor:
    """Replace the doctor's weekly hours with ``working_days``.

    Each entry carries ``weekday``, ``start_time``, ``end_time`` and
    optionally ``is_available`` and ``breaks``. Breaks must sit inside
    the working hours of their day.
    """
    seen = set()
    for day in working_days:
        label = WEEKDAYS[day['weekday']]
        if day['weekday'] in seen:
            raise DomainError(f'{label} is listed more than once', details={'weekday': day['weekday']})
        seen.add(day['weekday'])
        _check_range(day['start_time'], day['end_time'], label)
        opens, closes = to_minutes(day['start_time']), to_minutes(day['end_time'])
        for br in day.get('breaks') or []:
            _check_range(br['startTime'], br['endTime'], f'a break on {label}')
            if to_minutes(br['startTime']) < opens or to_minutes(br['endTime']) > closes:
                raise DomainError(f'Break must be within working hours for {label}',
                                  details={'break': dict(br),
                                           'workingHours': {'start': day['start_time'], 'end': day['end_time']}})

    doctor = Doctor.objects.select_for_update().get(pk=doctor.pk)
    if slot_minutes is not None:
        doctor.slot_minutes = slot_minutes
    if buffer_minutes is not None:
        doctor.buffer_minutes = buffer_minutes
    doctor.save(update_fields=['slot_minutes', 'buffer_minutes'])

    doctor.working_days.all().delete()
    DoctorAvailability.objects.bulk_create([
        DoctorAvailability(
            doctor=doctor, weekday=day['weekday'], start_time=day['start_time'], end_time=day['end_time'],
            is_available=day.get('is_available', True),
            breaks=[{'startTime': br['startTime'], 'endTime': br['endTime'],
                     'reason': clean_text(br.get('reason'))} for br in day.get('breaks') or []],
        )
        for day in working_days
    ])
    audit.log_action(user=user, action=audit.UPDATE, object_type='DoctorAvailability', object_id=doctor.id,
                     detail={'weekdays': sorted(seen), 'slotMinutes': doctor.slot_minutes,
                             'bufferMinutes': doctor.buffer_minutes}, request=request)
    logger.info('availability_set', doctor_id=doctor.id, days=len(seen))
    return doctor


@transaction.atomic
def add_schedule_block(user, doctor: Doctor, *, start_date: date, end_date: date, block_type: str,
                       start_time: str = '', end_time: str = '', reason: str = '', request=None) -> ScheduleBlock:
    """Block time for ``doctor``. Blocks may not overlap each other.

    A full-day block conflicts with any block on the same dates; two
    partial blocks conflict only when their hours overlap.
    """
    if start_date > end_date:
        raise DomainError('Start date must be before or equal to end date',
                          details={'startDate': start_date.isoformat(), 'endDate': end_date.isoformat()})
    if start_time or end_time:
        if start_date != end_date:
            raise DomainError('Custom hours can only be set for single-day blocks')
        if not (start_time and end_time):
            raise DomainError('Both startTime and endTime must be provided for custom hours')
        _check_range(start_time, end_time, 'the block')

    # serialize block creation per doctor
    Doctor.objects.select_for_update().filter(pk=doctor.pk).first()
    full_day = not start_time
    existing = ScheduleBlock.objects.filter(doctor=doctor, start_date__lte=end_date, end_date__gte=start_date)
    for other in existing:
        if full_day or other.is_full_day or overlaps(to_minutes(start_time), to_minutes(end_time),
                                                     to_minutes(other.start_time), to_minutes(other.end_time)):
            raise Conflict(
                f'Block overlaps an existing {other.block_type} block '
                f'({other.start_date.isoformat()} - {other.end_date.isoformat()})',
                details={'existingBlockId': other.id},
            )

    block = ScheduleBlock.objects.create(
        doctor=doctor, start_date=start_date, end_date=end_date, start_time=start_time, end_time=end_time,
        block_type=block_type, reason=clean_text(reason), created_by=user,
    )
    audit.log_action(user=user, action=audit.CREATE, object_type='ScheduleBlock', object_id=block.id,
                     detail={'doctorId': doctor.id, 'blockType': block_type,
                             'startDate': start_date.isoformat(), 'endDate': end_date.isoformat()}, request=request)
    return block


def slot_problem(doctor: Doctor, day: date, time: str, *, exclude_appointment_id=None) -> Optional[str]:
    """Return why ``time`` on ``day`` cannot be booked with ``doctor``, or None."""
    start = to_minutes(time)
    end = start + doctor.slot_minutes
    for block in blocks_on(doctor, day):
        if block.is_full_day or overlaps(start, end, to_minutes(block.start_time), to_minutes(block.end_time)):
            return f'Doctor is unavailable ({block.get_block_type_display()})'

    if not doctor.working_days.exists():
        return None
    hours = doctor.working_days.filter(weekday=day.weekday()).first()
    if hours is None or not hours.is_available:
        return f'Doctor does not work on {WEEKDAYS[day.weekday()]}'
    if start < to_minutes(hours.start_time) or end > to_minutes(hours.end_time):
        return f'Outside working hours ({hours.start_time}-{hours.end_time})'
    for br in hours.breaks:
        if overlaps(start, end, to_minutes(br['startTime']), to_minutes(br['endTime'])):
            return f"Overlaps a break ({br['startTime']}-{br['endTime']})"
    for other in appointments_on(doctor, day, exclude_appointment_id):
        other_start = to_minutes(other.time)
        if overlaps(start, end, other_start, other_start + doctor.slot_minutes):
            return f'Overlaps the appointment at {other.time}'
    return None


def ensure_slot_available(doctor: Doctor, day: date, time: str, *, exclude_appointment_id=None) -> None:
    reason = slot_problem(doctor, day, time, exclude_appointment_id=exclude_appointment_id)
    if reason:
        raise SlotUnavailable(f'Selected slot is not available: {reason}',
                              details={'reason': reason, 'date': day.isoformat(), 'time': time})


def available_slots(doctor: Doctor, day: date) -> List[dict]:
    """Every slot of the working day, flagged with whether it can still be booked."""
    today = timezone.localdate()
    if day < today:
        raise DomainError('Cannot get slots for past dates', details={'date': day.isoformat()})
    hours = doctor.working_days.filter(weekday=day.weekday(), is_available=True).first()
    if hours is None:
        return []
    blocks = list(blocks_on(doctor, day))
    if any(block.is_full_day for block in blocks):
        return []

    length = doctor.slot_minutes
    busy = [(to_minutes(br['startTime']), to_minutes(br['endTime'])) for br in hours.breaks]
    busy += [(to_minutes(b.start_time), to_minutes(b.end_time)) for b in blocks]
    busy += [(to_minutes(a.time), to_minutes(a.time) + length) for a in appointments_on(doctor, day)]
    earliest = None
    if day == today:
        now = timezone.localtime()
        earliest = now.hour * 60 + now.minute

    slots = []
    start, closes = to_minutes(hours.start_time), to_minutes(hours.end_time)
    while start + length <= closes:
        end = start + length
        free = not any(overlaps(start, end, s, e) for s, e in busy)
        if earliest is not None and start <= earliest:
            free = False
        slots.append({'startTime': to_hhmm(start), 'endTime': to_hhmm(end), 'duration': length, 'isAvailable': free})
        start += length + doctor.buffer_minutes
    return slots


def format_availability(doctor: Doctor) -> dict:
    return {
        'doctorId': doctor.id,
        'slotMinutes': doctor.slot_minutes,
        'bufferMinutes': doctor.buffer_minutes,
        'workingDays': [
            {
                'weekday': d.weekday,
                'day': d.get_weekday_display(),
                'startTime': d.start_time,
                'endTime': d.end_time,
                'isAvailable': d.is_available,
                'breaks': d.breaks,
            }
            for d in doctor.working_days.all()
        ],
    }


def format_block(b: ScheduleBlock) -> dict:
    return {
        'id': b.id,
        'doctorId': b.doctor_id,
        'startDate': b.start_date.isoformat(),
        'endDate': b.end_date.isoformat(),
        'startTime': b.start_time or None,
        'endTime': b.end_time or None,
        'fullDay': b.is_full_day,
        'blockType': b.block_type,
        'reason': b.reason,
    }
