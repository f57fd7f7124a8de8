from datetime import timedelta

import pytest
from django.utils import timezone

from clinic.models import AuditEvent, CasePlan, ClinicalFormResponse, SurgicalCase, Theater, TheaterBooking
from clinic.services.clinical_forms import PREOP_WARD

pytestmark = pytest.mark.django_db

PLAN = {
    'procedurePlan': '<p>Laparoscopic cholecystectomy, 4 port</p><script>alert(1)</script>',
    'riskFactors': 'Type 2 diabetes, BMI 34',
    'plannedAnesthesia': 'GENERAL',
    'estimatedDurationMinutes': 90,
}


def save_plan(client, appointment, **extra):
    body = {'appointmentId': appointment.id, 'patientId': appointment.patient_id, **PLAN, **extra}
    return client.post('/api/case-plans', body, format='json')


def test_first_plan_save_opens_exactly_one_case(doctor_user, client_for, appointment):
    client = client_for(doctor_user)
    r = save_plan(client, appointment)
    assert r.status_code == 201
    assert r.data['caseCreated'] is True
    case_id = r.data['data']['surgicalCaseId']
    assert '<script>' not in r.data['data']['procedurePlan']

    r = save_plan(client, appointment, riskFactors='Type 2 diabetes, BMI 34, smoker')
    assert r.status_code == 200
    assert r.data['caseCreated'] is False
    assert r.data['data']['surgicalCaseId'] == case_id

    assert SurgicalCase.objects.count() == 1
    case = SurgicalCase.objects.get()
    assert case.status == SurgicalCase.STATUS_DRAFT
    assert case.primary_surgeon == doctor_user.doctor_profile
    assert case.case_plan == CasePlan.objects.get(appointment=appointment)

    r = client.get(f'/api/case-plans/by-appointment/{appointment.id}')
    assert r.data['data']['riskFactors'].endswith('smoker')


def test_plan_rejects_mismatched_patient(doctor_user, client_for, appointment):
    r = save_plan(client_for(doctor_user), appointment, patientId=appointment.patient_id + 100)
    assert r.status_code == 400
    assert not SurgicalCase.objects.exists()


def test_plan_rejects_unknown_anesthesia(doctor_user, client_for, appointment):
    r = save_plan(client_for(doctor_user), appointment, plannedAnesthesia='HYPNOSIS')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'validation_error'
    assert 'plannedAnesthesia' in r.data['error']['details']


def test_readiness_gate_and_mark_ready(doctor_user, client_for, appointment):
    client = client_for(doctor_user)
    case_id = save_plan(client, appointment).data['data']['surgicalCaseId']

    r = client.post(f'/api/surgical-cases/{case_id}/mark-ready')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'invalid_transition'

    r = client.post(f'/api/surgical-cases/{case_id}/plan', {'procedureName': 'Lap chole', 'side': 'N/A'}, format='json')
    assert r.status_code == 200
    assert r.data['data']['status'] == SurgicalCase.STATUS_PLANNING

    readiness = client.get(f'/api/surgical-cases/{case_id}/readiness').data['data']
    assert readiness['isComplete'] is False
    assert readiness['missingRequired'] == ['Consent Signed', 'Pre-Op Photos']
    assert readiness['completedCount'] == 3 and readiness['totalRequired'] == 5

    r = client.post(f'/api/surgical-cases/{case_id}/mark-ready')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'clinical_gate_failed'
    assert r.data['error']['details']['missingItems'] == ['Consent Signed', 'Pre-Op Photos']

    consent = client.post(f'/api/surgical-cases/{case_id}/consents',
                          {'type': 'GENERAL_PROCEDURE', 'title': 'Consent for surgery'}, format='json')
    assert consent.status_code == 201
    dup = client.post(f'/api/surgical-cases/{case_id}/consents',
                      {'type': 'GENERAL_PROCEDURE', 'title': 'Again'}, format='json')
    assert dup.data['error']['code'] == 'conflict'
    r = client.post(f"/api/surgical-cases/{case_id}/consents/{consent.data['data']['id']}/sign")
    assert r.data['data']['status'] == 'SIGNED'
    r = client.post(f'/api/surgical-cases/{case_id}/photos',
                    {'timepoint': 'PRE_OP', 'imageUrl': 'https://img.example.org/pre-op-1.jpg'}, format='json')
    assert r.status_code == 201

    r = client.post(f'/api/surgical-cases/{case_id}/mark-ready')
    assert r.status_code == 200
    assert r.data['data']['status'] == SurgicalCase.STATUS_READY_FOR_SCHEDULING
    assert CasePlan.objects.get(surgical_case_id=case_id).readiness_status == 'READY'


def test_empty_html_procedure_plan_is_rejected(doctor_user, client_for, appointment):
    client = client_for(doctor_user)
    case_id = save_plan(client, appointment).data['data']['surgicalCaseId']
    r = client.post(f'/api/surgical-cases/{case_id}/plan', {'procedurePlan': '<p> </p><br>'}, format='json')
    assert r.status_code == 400
    assert 'empty' in r.data['error']['message']


def booking_body(case, theater, start, minutes=90):
    return {'caseId': case.id, 'theaterId': theater.id, 'startTime': start.isoformat(),
            'endTime': (start + timedelta(minutes=minutes)).isoformat()}


def test_booking_schedules_case_and_rejects_overlap(admin_user, client_for, make_case, theater):
    client = client_for(admin_user)
    start = timezone.now().replace(microsecond=0) + timedelta(days=2)
    first = make_case(SurgicalCase.STATUS_READY_FOR_SCHEDULING)
    second = make_case(SurgicalCase.STATUS_READY_FOR_SCHEDULING)

    r = client.post('/api/theater/bookings', booking_body(first, theater, start), format='json')
    assert r.status_code == 201
    first.refresh_from_db()
    assert first.status == SurgicalCase.STATUS_SCHEDULED

    r = client.post('/api/theater/bookings', booking_body(second, theater, start + timedelta(minutes=30)), format='json')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'conflict'
    second.refresh_from_db()
    assert second.status == SurgicalCase.STATUS_READY_FOR_SCHEDULING

    # Back-to-back is fine
    r = client.post('/api/theater/bookings', booking_body(second, theater, start + timedelta(minutes=90)), format='json')
    assert r.status_code == 201


def test_booking_requires_ready_case_and_active_theater(admin_user, client_for, make_case, theater):
    client = client_for(admin_user)
    start = timezone.now() + timedelta(days=1)
    r = client.post('/api/theater/bookings', booking_body(make_case(SurgicalCase.STATUS_PLANNING), theater, start),
                    format='json')
    assert r.data['error']['code'] == 'invalid_transition'

    closed = Theater.objects.create(name='Theater 2', is_active=False)
    r = client.post('/api/theater/bookings',
                    booking_body(make_case(SurgicalCase.STATUS_READY_FOR_SCHEDULING), closed, start), format='json')
    assert r.status_code == 400
    assert not TheaterBooking.objects.exists()


def test_blocked_transition_is_audited(theater_user, nurse_user, client_for, make_case):
    case = make_case(SurgicalCase.STATUS_SCHEDULED)
    client = client_for(theater_user)

    r = client.post(f'/api/surgical-cases/{case.id}/transition', {'action': 'RECOVERY'}, format='json')
    assert r.data['error']['code'] == 'invalid_transition'

    assert client.post(f'/api/surgical-cases/{case.id}/transition', {'action': 'IN_PREP'},
                       format='json').status_code == 200
    r = client.post(f'/api/surgical-cases/{case.id}/transition', {'action': 'IN_THEATER'}, format='json')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'clinical_gate_failed'
    assert r.data['error']['details']['missingItems'] == ['Pre-op ward checklist not finalized']
    case.refresh_from_db()
    assert case.status == SurgicalCase.STATUS_IN_PREP
    blocked = AuditEvent.objects.get(action='CASE_TRANSITION_BLOCKED', object_id=str(case.id))
    assert blocked.detail['targetStatus'] == 'IN_THEATER'

    ClinicalFormResponse.objects.create(surgical_case=case, template_key=PREOP_WARD.key,
                                        status=ClinicalFormResponse.STATUS_FINAL, data={})
    r = client.post(f'/api/surgical-cases/{case.id}/transition', {'action': 'IN_THEATER'}, format='json')
    assert r.status_code == 200
    assert r.data['data']['status'] == SurgicalCase.STATUS_IN_THEATER
    assert r.data['data']['wheelsInAt']


def test_cancel_case_releases_bookings(admin_user, client_for, make_case, theater):
    case = make_case(SurgicalCase.STATUS_SCHEDULED)
    start = timezone.now() + timedelta(days=1)
    booking = TheaterBooking.objects.create(theater=theater, surgical_case=case, start_time=start,
                                            end_time=start + timedelta(hours=1))
    client = client_for(admin_user)
    assert client.post(f'/api/surgical-cases/{case.id}/cancel', {}, format='json').status_code == 400

    r = client.post(f'/api/surgical-cases/{case.id}/cancel', {'reason': 'Patient unfit'}, format='json')
    assert r.status_code == 200
    booking.refresh_from_db()
    assert booking.status == TheaterBooking.STATUS_CANCELLED

    r = client.post(f'/api/surgical-cases/{case.id}/cancel', {'reason': 'again'}, format='json')
    assert r.data['error']['code'] == 'invalid_transition'


def test_dayboard_groups_by_theater(admin_user, client_for, make_case, theater):
    case = make_case(SurgicalCase.STATUS_SCHEDULED)
    start = timezone.now().replace(hour=9, minute=0, second=0, microsecond=0)
    TheaterBooking.objects.create(theater=theater, surgical_case=case, start_time=start,
                                  end_time=start + timedelta(hours=2))
    r = client_for(admin_user).get('/api/theater/dayboard', {'date': timezone.localdate(start).isoformat()})
    assert r.status_code == 200
    board = r.data['data']
    assert board['theaters'][0]['theaterName'] == 'Theater 1'
    assert board['summary']['totalCases'] == 1
    assert board['summary']['scheduled'] == 1
    assert board['summary']['utilizationByTheater'] == {'Theater 1': 120}
