from datetime import timedelta

import pytest
from django.utils import timezone

from clinic.models import IntakeSession, IntakeSubmission, Patient

pytestmark = pytest.mark.django_db

SUBMISSION = {
    'firstName': 'Brian',
    'lastName': 'Kamau',
    'dateOfBirth': '1990-02-01',
    'gender': 'MALE',
    'phone': '0722000111',
    'allergies': 'Penicillin',
    'privacyConsent': True,
    'serviceConsent': True,
    'medicalConsent': True,
}


@pytest.fixture
def session_id(frontdesk_user, client_for):
    r = client_for(frontdesk_user).post('/api/intake/sessions')
    assert r.status_code == 201
    assert r.data['data']['status'] == IntakeSession.STATUS_ACTIVE
    return r.data['data']['sessionId']


def submit(client_for, session_id, **overrides):
    return client_for().post('/api/intake/submit', {**SUBMISSION, 'sessionId': session_id, **overrides}, format='json')


def test_submit_then_confirm_creates_patient(session_id, frontdesk_user, client_for):
    r = submit(client_for, session_id)
    assert r.status_code == 201
    assert r.data['data']['status'] == IntakeSubmission.STATUS_PENDING

    pending = client_for(frontdesk_user).get('/api/intake/pending').data['data']
    assert [p['sessionId'] for p in pending] == [session_id]

    r = client_for(frontdesk_user).post(f'/api/intake/{session_id}/confirm')
    assert r.status_code == 201
    assert r.data['data']['patient']['fileNumber'] == 'NS001'
    assert r.data['data']['submission']['status'] == IntakeSubmission.STATUS_CONFIRMED
    assert IntakeSession.objects.get(session_id=session_id).status == IntakeSession.STATUS_CONFIRMED

    again = client_for(frontdesk_user).post(f'/api/intake/{session_id}/confirm')
    assert again.status_code == 400
    assert Patient.objects.count() == 1


def test_session_accepts_one_submission(session_id, client_for):
    assert submit(client_for, session_id).status_code == 201
    r = submit(client_for, session_id, firstName='Other')
    assert r.status_code == 400
    assert IntakeSubmission.objects.count() == 1


def test_consents_are_required(session_id, client_for):
    r = submit(client_for, session_id, medicalConsent=False)
    assert r.status_code == 400
    assert 'medicalConsent' in r.data['error']['details']
    assert not IntakeSubmission.objects.exists()


def test_expired_session_is_refused(session_id, client_for):
    IntakeSession.objects.filter(session_id=session_id).update(expires_at=timezone.now() - timedelta(minutes=1))
    r = submit(client_for, session_id)
    assert r.status_code == 400
    assert r.data['error']['message'] == 'Session has expired'
    assert IntakeSession.objects.get(session_id=session_id).status == IntakeSession.STATUS_EXPIRED


def test_unknown_session_is_404(client_for, db):
    assert submit(client_for, 'f' * 32).status_code == 404


def test_reject_requires_reason(session_id, frontdesk_user, client_for):
    submit(client_for, session_id)
    client = client_for(frontdesk_user)
    assert client.post(f'/api/intake/{session_id}/reject', {}, format='json').status_code == 400
    r = client.post(f'/api/intake/{session_id}/reject', {'reason': 'Duplicate of NS014'}, format='json')
    assert r.status_code == 200
    assert r.data['data']['status'] == IntakeSubmission.STATUS_REJECTED
    assert client.post(f'/api/intake/{session_id}/confirm').status_code == 400


def test_markup_is_stripped(session_id, frontdesk_user, client_for):
    submit(client_for, session_id, firstName='<b>Brian</b>', allergies='<script>x</script>Latex')
    r = client_for(frontdesk_user).post(f'/api/intake/{session_id}/confirm')
    patient = Patient.objects.get(id=r.data['data']['patient']['id'])
    assert patient.first_name == 'Brian'
    assert '<' not in patient.allergies
