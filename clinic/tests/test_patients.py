from datetime import date, timedelta

import pytest

from clinic.models import AuditEvent, Patient
from clinic.services.patients import clean_text, next_file_number

pytestmark = pytest.mark.django_db

NEW_PATIENT = {
    'firstName': 'Grace',
    'lastName': 'Achieng',
    'dateOfBirth': '1978-11-30',
    'gender': 'FEMALE',
    'phone': '0733555666',
}


def test_register_assigns_sequential_file_numbers(frontdesk_user, client_for):
    client = client_for(frontdesk_user)
    first = client.post('/api/patients/register', NEW_PATIENT, format='json')
    second = client.post('/api/patients/register', {**NEW_PATIENT, 'firstName': 'Faith'}, format='json')
    assert first.status_code == 201 and second.status_code == 201
    assert first.data['data']['fileNumber'] == 'NS001'
    assert second.data['data']['fileNumber'] == 'NS002'
    assert AuditEvent.objects.filter(action='CREATE', object_type='Patient').count() == 2


def test_file_numbers_compare_numerically(patient):
    Patient.objects.create(file_number='NS999', first_name='A', last_name='B', date_of_birth=date(2000, 1, 1),
                           gender='MALE', phone='1')
    Patient.objects.create(file_number='NS1000', first_name='C', last_name='D', date_of_birth=date(2000, 1, 1),
                           gender='MALE', phone='2')
    assert next_file_number() == 'NS1001'


def test_future_birth_date_is_rejected(frontdesk_user, client_for):
    body = {**NEW_PATIENT, 'dateOfBirth': (date.today() + timedelta(days=2)).isoformat()}
    r = client_for(frontdesk_user).post('/api/patients/register', body, format='json')
    assert r.status_code == 400
    assert 'dateOfBirth' in r.data['error']['details']


def test_search_is_paginated(nurse_user, client_for, patient):
    r = client_for(nurse_user).get('/api/patients', {'q': 'otieno', 'pageSize': 10})
    assert r.status_code == 200
    assert r.data['pagination'] == {'total': 1, 'page': 1, 'pageSize': 10}
    assert r.data['data'][0]['fileNumber'] == 'NS001'


def test_update_patient_is_audited(frontdesk_user, client_for, patient):
    r = client_for(frontdesk_user).post(f'/api/patients/{patient.id}/update', {'phone': '0700111222'}, format='json')
    assert r.status_code == 200
    assert r.data['data']['phone'] == '0700111222'
    event = AuditEvent.objects.get(action='UPDATE', object_type='Patient')
    assert event.detail['fields'] == ['phone']


def test_free_text_keeps_ampersands_and_angle_brackets(frontdesk_user, client_for):
    body = {**NEW_PATIENT, 'lastName': "O'Neil & Sons", 'address': 'Smith & Sons, Plot <12>',
            'allergies': '<b>Penicillin</b> reaction if dose <5mg'}
    r = client_for(frontdesk_user).post('/api/patients/register', body, format='json')
    assert r.status_code == 201
    data = r.data['data']
    assert data['lastName'] == "O'Neil & Sons"
    assert data['allergies'] == 'Penicillin reaction if dose <5mg'
    stored = Patient.objects.get(id=data['id'])
    assert stored.address == data['address']
    assert '&amp;' not in stored.address and '&lt;' not in stored.allergies


def test_clean_text_removes_tags_only():
    assert clean_text('Smith & Sons, allergy <5mg') == 'Smith & Sons, allergy <5mg'
    assert clean_text('<script>alert(1)</script>Latex') == 'alert(1)Latex'
    assert clean_text(None) == ''
