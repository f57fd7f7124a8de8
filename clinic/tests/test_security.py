import pytest

from clinic.models import Appointment, AuditEvent, SurgicalCase, User

pytestmark = pytest.mark.django_db

# (role, method, path) combinations that must be refused with 403
FORBIDDEN = [
    (User.ROLE_NURSE, 'post', '/api/patients/register'),
    (User.ROLE_CASHIER, 'post', '/api/appointments/create'),
    (User.ROLE_FRONTDESK, 'post', '/api/appointments/1/confirm'),
    (User.ROLE_NURSE, 'post', '/api/case-plans'),
    (User.ROLE_FRONTDESK, 'get', '/api/surgical-cases'),
    (User.ROLE_NURSE, 'post', '/api/surgical-cases/1/mark-ready'),
    (User.ROLE_CASHIER, 'get', '/api/surgical-cases/1/forms/preop-ward'),
    (User.ROLE_ADMIN, 'post', '/api/surgical-cases/1/forms/preop-ward/draft'),
    (User.ROLE_NURSE, 'post', '/api/theater/bookings'),
    (User.ROLE_NURSE, 'post', '/api/surgical-cases/1/transition'),
    (User.ROLE_FRONTDESK, 'get', '/api/theater/dayboard'),
    (User.ROLE_NURSE, 'post', '/api/billing/bills/create'),
    (User.ROLE_FRONTDESK, 'post', '/api/billing/bills/1/pay'),
    (User.ROLE_DOCTOR, 'get', '/api/admin/dashboard'),
    (User.ROLE_NURSE, 'get', '/api/dashboard/appointment-trends'),
    (User.ROLE_DOCTOR, 'get', '/api/admin/audit'),
    (User.ROLE_FRONTDESK, 'post', '/api/admin/users/create'),
    (User.ROLE_PATIENT, 'get', '/api/patients'),
    (User.ROLE_PATIENT, 'get', '/api/theaters'),
    (User.ROLE_FRONTDESK, 'post', '/api/doctors/1/availability/set'),
    (User.ROLE_NURSE, 'post', '/api/doctors/1/blocks/create'),
    (User.ROLE_CASHIER, 'post', '/api/appointments/1/reschedule'),
    (User.ROLE_NURSE, 'post', '/api/appointments/1/consultation/draft'),
]


@pytest.mark.parametrize('role,method,path', FORBIDDEN)
def test_role_outside_allow_list_gets_403(role, method, path, user_factory, client_for):
    user = user_factory(f'u_{role.lower()}', role)
    client = client_for(user)
    r = client.post(path, {}, format='json') if method == 'post' else client.get(path)
    assert r.status_code == 403
    assert r.data == {'success': False, 'error': {'code': 'forbidden', 'message': r.data['error']['message']}}


@pytest.mark.parametrize('method,path', [
    ('get', '/api/auth/me'),
    ('get', '/api/appointments'),
    ('post', '/api/case-plans'),
    ('get', '/api/surgical-cases/1'),
    ('get', '/api/admin/audit'),
])
def test_anonymous_gets_401(method, path, client_for):
    r = getattr(client_for(), method)(path)
    assert r.status_code == 401
    assert r.data['success'] is False


def test_forbidden_request_changes_nothing(nurse_user, client_for, appointment):
    r = client_for(nurse_user).post(f'/api/appointments/{appointment.id}/cancel', {'reason': 'clash'}, format='json')
    assert r.status_code == 403
    appointment.refresh_from_db()
    assert appointment.status == Appointment.STATUS_PENDING
    assert not AuditEvent.objects.filter(object_type='Appointment').exists()


def test_doctor_cannot_confirm_other_doctors_appointment(other_doctor_user, client_for, appointment):
    r = client_for(other_doctor_user).post(f'/api/appointments/{appointment.id}/confirm')
    assert r.status_code == 403
    appointment.refresh_from_db()
    assert appointment.status == Appointment.STATUS_PENDING


def test_only_primary_surgeon_edits_plan(other_doctor_user, client_for, make_case):
    case = make_case(SurgicalCase.STATUS_PLANNING)
    r = client_for(other_doctor_user).post(f'/api/surgical-cases/{case.id}/plan',
                                           {'procedureName': 'Open appendicectomy'}, format='json')
    assert r.status_code == 403
    case.refresh_from_db()
    assert case.procedure_name == 'Laparoscopic cholecystectomy'


def test_doctor_case_list_is_scoped_to_own_cases(doctor_user, other_doctor_user, client_for, make_case):
    mine = make_case()
    make_case(surgeon=other_doctor_user)
    r = client_for(doctor_user).get('/api/surgical-cases')
    assert r.status_code == 200
    assert [c['id'] for c in r.data['data']] == [mine.id]


def test_login_is_throttled(user_factory, client_for):
    user_factory('frontdesk9', User.ROLE_FRONTDESK)
    client = client_for()
    codes = [
        client.post('/api/auth/login', {'username': 'frontdesk9', 'password': 'nope'}, format='json').status_code
        for _ in range(12)
    ]
    assert codes[:10] == [401] * 10
    assert codes[-1] == 429
