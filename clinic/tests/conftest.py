from datetime import date, timedelta

import pytest
from django.core.cache import cache
from django.utils import timezone
from rest_framework.test import APIClient

from clinic.models import Appointment, Doctor, Patient, SurgicalCase, Theater, User

PASSWORD = 'Cl1nic-Pass#42'


@pytest.fixture(autouse=True)
def clear_cache():
    # Throttle counters and cached dashboards live in the locmem cache
    cache.clear()
    yield
    cache.clear()


def make_user(username, role, **extra):
    return User.objects.create_user(username=username, password=PASSWORD, role=role, **extra)


def make_doctor(username, name='Dr Smith'):
    user = make_user(username, User.ROLE_DOCTOR)
    Doctor.objects.create(user=user, name=name, specialization='General Surgery')
    return user


@pytest.fixture
def password():
    return PASSWORD


@pytest.fixture
def user_factory(db):
    return make_user


@pytest.fixture
def client_for():
    """Return a factory of APIClients authenticated as the given user (anonymous for None)."""
    def _client(user=None) -> APIClient:
        client = APIClient()
        if user is not None:
            client.force_authenticate(user=user)
        return client
    return _client


@pytest.fixture
def admin_user(db):
    return make_user('admin1', User.ROLE_ADMIN)


@pytest.fixture
def doctor_user(db):
    return make_doctor('doctor1')


@pytest.fixture
def other_doctor_user(db):
    return make_doctor('doctor2', name='Dr Jones')


@pytest.fixture
def nurse_user(db):
    return make_user('nurse1', User.ROLE_NURSE)


@pytest.fixture
def frontdesk_user(db):
    return make_user('frontdesk1', User.ROLE_FRONTDESK)


@pytest.fixture
def theater_user(db):
    return make_user('theater1', User.ROLE_THEATER_TECHNICIAN)


@pytest.fixture
def cashier_user(db):
    return make_user('cashier1', User.ROLE_CASHIER)


@pytest.fixture
def patient(db):
    return Patient.objects.create(
        file_number='NS001', first_name='Amina', last_name='Otieno', date_of_birth=date(1985, 4, 12),
        gender=Patient.GENDER_FEMALE, phone='0712345678',
    )


@pytest.fixture
def appointment(patient, doctor_user):
    return Appointment.objects.create(
        patient=patient, doctor=doctor_user.doctor_profile,
        appointment_date=timezone.localdate() + timedelta(days=1), time='10:00',
    )


@pytest.fixture
def theater(db):
    return Theater.objects.create(name='Theater 1')


@pytest.fixture
def make_case(patient, doctor_user):
    def _make(status=SurgicalCase.STATUS_DRAFT, surgeon=None):
        surgeon = surgeon or doctor_user
        return SurgicalCase.objects.create(
            patient=patient, primary_surgeon=surgeon.doctor_profile, status=status,
            procedure_name='Laparoscopic cholecystectomy',
        )
    return _make
