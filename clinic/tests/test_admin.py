from datetime import date

import pytest
from django.core.management import call_command
from django.utils import timezone

from clinic.models import Appointment, Doctor, Patient, User

pytestmark = pytest.mark.django_db


def test_admin_creates_doctor_with_profile(admin_user, client_for):
    client = client_for(admin_user)
    body = {'username': 'dr.mwangi', 'password': 'Scalpel#2024x', 'firstName': 'Peter', 'lastName': 'Mwangi',
            'specialization': 'Orthopaedics'}
    r = client.post('/api/doctors/create', body, format='json')
    assert r.status_code == 201
    assert r.data['data']['specialization'] == 'Orthopaedics'
    user = User.objects.get(username='dr.mwangi')
    assert user.role == User.ROLE_DOCTOR
    assert Doctor.objects.get(user=user).name == 'Peter Mwangi'

    r = client.post('/api/doctors/create', body, format='json')
    assert r.data['error']['code'] == 'conflict'


def test_weak_password_is_rejected(admin_user, client_for):
    r = client_for(admin_user).post('/api/admin/users/create',
                                    {'username': 'nurse7', 'password': '12345678', 'role': 'NURSE'}, format='json')
    assert r.status_code == 400
    assert 'password' in r.data['error']['details']


def test_deactivate_user_and_not_self(admin_user, nurse_user, client_for):
    client = client_for(admin_user)
    r = client.post(f'/api/admin/users/{nurse_user.id}/status', {'status': 'INACTIVE'}, format='json')
    assert r.status_code == 200
    nurse_user.refresh_from_db()
    assert not nurse_user.is_account_active

    r = client.post(f'/api/admin/users/{admin_user.id}/status', {'status': 'INACTIVE'}, format='json')
    assert r.status_code == 400

    listed = client.get('/api/admin/users', {'role': 'NURSE'}).data['data']
    assert [u['status'] for u in listed] == ['INACTIVE']


def test_admin_dashboard_is_cached(admin_user, client_for, patient):
    client = client_for(admin_user)
    first = client.get('/api/admin/dashboard').data['data']
    assert first['totalPatients'] == 1

    Patient.objects.create(file_number='NS002', first_name='Late', last_name='Arrival',
                           date_of_birth=date(1999, 9, 9), gender='MALE', phone='3')
    assert client.get('/api/admin/dashboard').data['data'] == first

    call_command('refresh_caches')
    assert client.get('/api/admin/dashboard').data['data']['totalPatients'] == 2


def test_appointment_trends_window(doctor_user, client_for, patient):
    Appointment.objects.create(patient=patient, doctor=doctor_user.doctor_profile,
                               appointment_date=timezone.localdate(), time='08:00',
                               status=Appointment.STATUS_COMPLETED)
    client = client_for(doctor_user)
    r = client.get('/api/dashboard/appointment-trends', {'days': 7})
    assert r.status_code == 200
    assert r.data['meta'] == {'days': 7}
    assert len(r.data['data']) == 7
    assert r.data['data'][-1] == {'date': timezone.localdate().isoformat(), 'total': 1,
                                  'byStatus': {'COMPLETED': 1}}
    assert client.get('/api/dashboard/appointment-trends', {'days': 0}).status_code == 400
    assert client.get('/api/dashboard/appointment-trends', {'days': 366}).status_code == 400
    assert len(client.get('/api/dashboard/appointment-trends', {'days': 365}).data['data']) == 365


def test_intake_counts_cover_every_status(frontdesk_user, client_for):
    r = client_for(frontdesk_user).get('/api/dashboard/intake-counts')
    assert r.status_code == 200
    assert r.data['data']['submissionsByStatus'] == {'PENDING': 0, 'CONFIRMED': 0, 'REJECTED': 0}


def test_ensure_test_users_is_idempotent(db):
    call_command('ensure_test_users', password='Another#Pass99')
    call_command('ensure_test_users', password='Another#Pass99')
    assert User.objects.filter(username='doctor1').count() == 1
    assert Doctor.objects.filter(user__username='doctor1').count() == 1
    assert User.objects.get(username='cashier1').check_password('Another#Pass99')
