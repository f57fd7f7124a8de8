from decimal import Decimal

import pytest

from clinic.models import Payment

pytestmark = pytest.mark.django_db


@pytest.fixture
def bill(cashier_user, client_for, patient):
    r = client_for(cashier_user).post('/api/billing/bills/create',
                                      {'patientId': patient.id, 'totalAmount': '100.00', 'discount': '10.00'},
                                      format='json')
    assert r.status_code == 201
    return r.data['data']


def pay(client, bill_id, amount, method='CASH'):
    return client.post(f'/api/billing/bills/{bill_id}/pay', {'amount': amount, 'method': method}, format='json')


def test_bill_moves_from_unpaid_to_paid(bill, cashier_user, client_for):
    assert bill['status'] == Payment.STATUS_UNPAID
    assert Decimal(bill['balance']) == Decimal('90')

    client = client_for(cashier_user)
    r = pay(client, bill['id'], '40.00')
    assert r.status_code == 200
    assert r.data['data']['status'] == Payment.STATUS_PART
    assert r.data['data']['receiptNumber'] is None

    r = pay(client, bill['id'], '60.00', 'MOBILE_MONEY')
    assert r.status_code == 400
    assert r.data['error']['details'] == {'balance': '50.00'}

    r = pay(client, bill['id'], '50.00', 'MOBILE_MONEY')
    assert r.data['data']['status'] == Payment.STATUS_PAID
    assert Decimal(r.data['data']['balance']) == Decimal('0')
    assert r.data['data']['receiptNumber'].startswith('RCT-')

    assert pay(client, bill['id'], '1.00').status_code == 400


def test_discount_cannot_exceed_total(cashier_user, client_for, patient):
    r = client_for(cashier_user).post('/api/billing/bills/create',
                                      {'patientId': patient.id, 'totalAmount': '50.00', 'discount': '60.00'},
                                      format='json')
    assert r.status_code == 400
    assert 'discount' in r.data['error']['details']


def test_one_bill_per_appointment(frontdesk_user, client_for, appointment):
    client = client_for(frontdesk_user)
    body = {'patientId': appointment.patient_id, 'appointmentId': appointment.id, 'totalAmount': '25.00'}
    assert client.post('/api/billing/bills/create', body, format='json').status_code == 201
    r = client.post('/api/billing/bills/create', body, format='json')
    assert r.data['error']['code'] == 'conflict'


def test_unknown_method_is_rejected(bill, cashier_user, client_for):
    r = pay(client_for(cashier_user), bill['id'], '10.00', 'CHEQUE')
    assert r.status_code == 400
    assert 'method' in r.data['error']['details']


def test_list_filters_by_status(bill, admin_user, client_for):
    r = client_for(admin_user).get('/api/billing/bills', {'status': 'PAID'})
    assert r.data['data'] == []
    r = client_for(admin_user).get('/api/billing/bills', {'status': 'UNPAID'})
    assert [b['id'] for b in r.data['data']] == [bill['id']]
