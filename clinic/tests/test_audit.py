import pytest
from django.db.models import ProtectedError

from clinic.models import AuditEvent
from clinic.services import audit

pytestmark = pytest.mark.django_db


def test_events_are_append_only(admin_user):
    event = audit.log_action(user=admin_user, action=audit.CREATE, object_type='Patient', object_id=7)
    assert event.pk and event.object_id == '7'

    event.action = 'TAMPERED'
    with pytest.raises(PermissionError):
        event.save()
    with pytest.raises(PermissionError):
        event.delete()
    with pytest.raises(PermissionError):
        AuditEvent.objects.filter(pk=event.pk).update(action='TAMPERED')
    with pytest.raises(PermissionError):
        AuditEvent.objects.all().delete()
    assert AuditEvent.objects.get(pk=event.pk).action == audit.CREATE


def test_anonymous_actor_is_stored_as_null():
    event = audit.log_action(user=None, action=audit.LOGIN_FAILED, detail={'username': 'ghost'})
    assert event.user_id is None
    assert event.detail == {'username': 'ghost'}


def test_audit_trail_endpoint_filters_and_paginates(admin_user, client_for):
    for i in range(3):
        audit.log_action(user=admin_user, action=audit.UPDATE, object_type='Appointment', object_id=i)
    audit.log_action(user=admin_user, action=audit.CREATE, object_type='Patient', object_id=1)

    r = client_for(admin_user).get('/api/admin/audit', {'objectType': 'Appointment', 'pageSize': 2})
    assert r.status_code == 200
    assert r.data['pagination'] == {'total': 3, 'page': 1, 'pageSize': 2}
    assert len(r.data['data']) == 2
    assert {e['objectType'] for e in r.data['data']} == {'Appointment'}
    assert r.data['data'][0]['username'] == 'admin1'


def test_users_with_history_cannot_be_deleted(nurse_user):
    event = audit.log_action(user=nurse_user, action=audit.LOGIN, object_type='User', object_id=nurse_user.id)
    with pytest.raises(ProtectedError):
        nurse_user.delete()
    assert AuditEvent.objects.get(pk=event.pk).user_id == nurse_user.id
