import pytest
from django.db import DatabaseError

from clinic.models import Appointment, AuditEvent
from clinic.services import patients as patient_service

pytestmark = pytest.mark.django_db


def test_failed_audit_write_does_not_break_check_in(monkeypatch, frontdesk_user, client_for, appointment):
    def broken_create(**kwargs):
        raise DatabaseError('audit table unavailable')

    monkeypatch.setattr(AuditEvent.objects, 'create', broken_create)
    r = client_for(frontdesk_user).post(f'/api/appointments/{appointment.id}/check-in', {}, format='json')
    assert r.status_code == 200
    assert r.data['success'] is True
    assert r.data['data']['checkedInAt']

    appointment.refresh_from_db()
    assert appointment.checked_in_at is not None
    assert appointment.status == Appointment.STATUS_SCHEDULED
    assert not AuditEvent.objects.exists()


def test_unexpected_error_is_generic_500(monkeypatch, settings, nurse_user, client_for):
    settings.DEBUG = False

    def explode(q=None):
        raise RuntimeError('connection string postgres://secret@db')

    monkeypatch.setattr(patient_service, 'search_patients', explode)
    r = client_for(nurse_user).get('/api/patients')
    assert r.status_code == 500
    assert r.data == {'success': False, 'error': {'code': 'server_error', 'message': 'Internal server error'}}


def test_debug_mode_shows_the_error_message(monkeypatch, settings, nurse_user, client_for):
    settings.DEBUG = True

    def explode(q=None):
        raise RuntimeError('search index offline')

    monkeypatch.setattr(patient_service, 'search_patients', explode)
    r = client_for(nurse_user).get('/api/patients')
    assert r.status_code == 500
    assert r.data['error']['message'] == 'search index offline'
