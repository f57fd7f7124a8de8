"""
Integration tests for authentication and the response envelope.

These exercise the real login flow (JWT access/refresh pair), the
``{success, data | error}`` envelope, and how disabled accounts and
missing credentials are answered. Run with::

    pytest -q clinic/tests
"""
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from clinic.models import AuditEvent, Doctor, User


class AuthAPITests(APITestCase):
    password = 'Cl1nic-Pass#42'

    def setUp(self) -> None:
        self.admin = User.objects.create_user(username='admin1', password=self.password, role=User.ROLE_ADMIN)
        self.doctor = User.objects.create_user(username='doctor1', password=self.password, role=User.ROLE_DOCTOR)
        Doctor.objects.create(user=self.doctor, name='Dr Smith')
        self.client = APIClient()

    def login(self, username: str, password: str = None):
        return self.client.post('/api/auth/login', {'username': username, 'password': password or self.password},
                                format='json')

    def test_login_returns_tokens_and_user(self):
        r = self.login('doctor1')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertTrue(r.data['success'])
        self.assertTrue(r.data['data']['access'])
        self.assertTrue(r.data['data']['refresh'])
        self.assertEqual(r.data['data']['user']['role'], User.ROLE_DOCTOR)
        self.assertEqual(r.data['data']['user']['doctorId'], self.doctor.doctor_profile.id)
        self.assertTrue(AuditEvent.objects.filter(action='LOGIN', object_id=str(self.doctor.id)).exists())

    def test_login_ignores_role_in_payload(self):
        r = self.client.post('/api/auth/login',
                             {'username': 'doctor1', 'password': self.password, 'role': 'ADMIN'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['data']['user']['role'], User.ROLE_DOCTOR)

    def test_bad_password_is_401_and_audited(self):
        r = self.login('doctor1', 'wrong-password')
        self.assertEqual(r.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(r.data['success'])
        self.assertEqual(r.data['error']['code'], 'unauthorized')
        self.assertTrue(AuditEvent.objects.filter(action='LOGIN_FAILED').exists())

    def test_missing_fields_is_validation_error(self):
        r = self.client.post('/api/auth/login', {'username': 'doctor1'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(r.data['error']['code'], 'validation_error')
        self.assertIn('password', r.data['error']['details'])

    def test_inactive_account_cannot_log_in(self):
        self.doctor.status = User.STATUS_INACTIVE
        self.doctor.save(update_fields=['status'])
        r = self.login('doctor1')
        self.assertEqual(r.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_token_of_deactivated_user_is_refused(self):
        access = self.login('doctor1').data['data']['access']
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {access}')
        self.assertEqual(self.client.get('/api/auth/me').status_code, status.HTTP_200_OK)

        self.doctor.status = User.STATUS_DORMANT
        self.doctor.save(update_fields=['status'])
        r = self.client.get('/api/auth/me')
        self.assertEqual(r.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(r.data['success'])

    def test_missing_token_is_401(self):
        r = self.client.get('/api/patients')
        self.assertEqual(r.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(r.data['error']['code'], 'unauthorized')

    def test_garbage_token_is_401(self):
        self.client.credentials(HTTP_AUTHORIZATION='Bearer not-a-token')
        r = self.client.get('/api/auth/me')
        self.assertEqual(r.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh_and_logout_blacklists_refresh_token(self):
        tokens = self.login('admin1').data['data']
        r = self.client.post('/api/auth/refresh', {'refresh': tokens['refresh']}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertIn('access', r.data['data'])
        rotated = r.data['data'].get('refresh', tokens['refresh'])

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {r.data['data']['access']}")
        r = self.client.post('/api/auth/logout', {'refresh': rotated}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['data']['blacklisted'], 1)

        self.client.credentials()
        r = self.client.post('/api/auth/refresh', {'refresh': rotated}, format='json')
        self.assertEqual(r.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh_refused_after_deactivation(self):
        refresh = self.login('doctor1').data['data']['refresh']
        self.doctor.status = User.STATUS_INACTIVE
        self.doctor.save(update_fields=['status'])

        r = self.client.post('/api/auth/refresh', {'refresh': refresh}, format='json')
        self.assertEqual(r.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(r.data['success'])
        self.assertEqual(r.data['error']['code'], 'unauthorized')
        self.assertNotIn('data', r.data)

    def test_me_returns_profile(self):
        self.client.force_authenticate(user=self.admin)
        r = self.client.get('/api/auth/me')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data, {'success': True, 'data': r.data['data']})
        self.assertEqual(r.data['data']['username'], 'admin1')

    def test_unknown_resource_is_enveloped_404(self):
        self.client.force_authenticate(user=self.admin)
        r = self.client.get('/api/patients/999999')
        self.assertEqual(r.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(r.data['error']['code'], 'not_found')

    def test_healthz(self):
        r = self.client.get('/healthz')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.json(), {'success': True, 'data': {'db': True}})
