import copy

import pytest

from clinic.models import AuditEvent, ClinicalFormResponse, SurgicalCase
from clinic.serializers.clinical_forms import flatten_errors

pytestmark = pytest.mark.django_db

PREOP = {
    'documentation': {'documentationComplete': True, 'correctConsent': True},
    'medications': {'preMedGiven': False},
    'allergiesNpo': {'allergiesDocumented': True, 'npoStatus': True, 'npoFastedFromTime': '22:00'},
    'preparation': {'bathGown': True, 'idBandOn': True, 'jewelryRemoved': True, 'makeupNailPolishRemoved': True},
    'vitals': {'bpSystolic': 124, 'bpDiastolic': 78, 'pulse': 72, 'respiratoryRate': 16,
               'temperature': 36.8, 'bladderEmptied': True, 'weight': 71.5},
    'handover': {'preparedByName': 'Nurse Wanjiru'},
}

INTRAOP = {
    'theatreSetup': {'positioning': 'Supine', 'skinPrepAgent': 'Chlorhexidine', 'drapeType': 'Disposable',
                     'tourniquetUsed': False, 'cauteryUsed': True, 'drainsUsed': False, 'woundClass': 'CLEAN'},
    'counts': {'initialCountsCompleted': True, 'initialCountsRecordedBy': 'Nurse Wanjiru',
               'finalCountsCompleted': True, 'finalCountsRecordedBy': 'Nurse Wanjiru', 'countDiscrepancy': False},
    'implantsUsed': {'implantsConfirmed': True},
    'signOut': {'signOutCompleted': True, 'signOutNurseName': 'Nurse Wanjiru',
                'postopInstructionsConfirmed': True, 'specimensLabeledConfirmed': True},
}

RECOVERY = {
    'arrivalBaseline': {'timeArrivedRecovery': '11:30', 'airwayStatus': 'PATENT', 'oxygenDelivery': 'FACE_MASK',
                        'consciousness': 'ALERT', 'painScore': 2, 'nauseaVomiting': 'NONE'},
    'vitalsMonitoring': {'observations': [{'time': '11:35', 'bpSys': 118, 'bpDia': 76, 'pulse': 80,
                                           'rr': 16, 'spo2': 98}]},
    'dischargeReadiness': {
        'dischargeCriteria': {'vitalsStable': True, 'painControlled': True, 'nauseaControlled': True,
                              'bleedingControlled': True, 'airwayStable': True},
        'dischargeDecision': 'DISCHARGE_TO_WARD',
        'finalizedByName': 'Nurse Wanjiru',
    },
}


def form_url(case, slug, action=''):
    return f'/api/surgical-cases/{case.id}/forms/{slug}' + (f'/{action}' if action else '')


def draft(client, case, slug, data):
    return client.post(form_url(case, slug, 'draft'), {'data': data}, format='json')


def test_partial_draft_saves_and_incomplete_finalize_is_gated(nurse_user, client_for, make_case):
    case = make_case(SurgicalCase.STATUS_IN_PREP)
    client = client_for(nurse_user)

    r = draft(client, case, 'preop-ward', {'documentation': {'documentationComplete': True}})
    assert r.status_code == 200
    assert r.data['data']['status'] == 'DRAFT'

    r = client.post(form_url(case, 'preop-ward', 'finalize'))
    assert r.status_code == 400
    assert r.data['error']['code'] == 'clinical_gate_failed'
    missing = r.data['error']['details']['missingItems']
    assert 'documentation.correctConsent: This field is required.' in missing
    assert any(item.startswith('handover') for item in missing)
    assert ClinicalFormResponse.objects.get().status == ClinicalFormResponse.STATUS_DRAFT


def test_draft_still_type_checks_values(nurse_user, client_for, make_case):
    case = make_case(SurgicalCase.STATUS_IN_PREP)
    r = draft(client_for(nurse_user), case, 'preop-ward', {'vitals': {'pulse': 900}})
    assert r.status_code == 400
    assert r.data['error']['code'] == 'validation_error'
    assert not ClinicalFormResponse.objects.exists()


def test_draft_body_must_be_an_object(nurse_user, client_for, make_case):
    case = make_case(SurgicalCase.STATUS_IN_PREP)
    client = client_for(nurse_user)
    r = client.post(form_url(case, 'preop-ward', 'draft'), [PREOP], format='json')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'validation_error'
    r = draft(client, case, 'preop-ward', ['not', 'a', 'form'])
    assert r.status_code == 400
    assert not ClinicalFormResponse.objects.exists()


def test_finalize_freezes_the_form(nurse_user, client_for, make_case):
    case = make_case(SurgicalCase.STATUS_IN_PREP)
    client = client_for(nurse_user)
    assert draft(client, case, 'preop-ward', PREOP).status_code == 200

    r = client.post(form_url(case, 'preop-ward', 'finalize'))
    assert r.status_code == 200
    assert r.data['data']['status'] == 'FINAL'
    assert r.data['data']['signedById'] == nurse_user.id
    assert AuditEvent.objects.filter(action='FINALIZE', object_id=str(r.data['data']['id'])).exists()

    r = client.post(form_url(case, 'preop-ward', 'finalize'))
    assert r.data['error']['code'] == 'already_finalized'

    r = draft(client, case, 'preop-ward', {'handover': {'preparedByName': 'Someone Else'}})
    assert r.status_code == 400
    assert r.data['error']['code'] == 'already_finalized'
    assert ClinicalFormResponse.objects.get().data['handover']['preparedByName'] == 'Nurse Wanjiru'


def test_finalize_without_draft_is_404(nurse_user, client_for, make_case):
    case = make_case(SurgicalCase.STATUS_IN_PREP)
    assert client_for(nurse_user).post(form_url(case, 'recovery', 'finalize')).status_code == 404


def test_unknown_template_is_404(nurse_user, client_for, make_case):
    case = make_case(SurgicalCase.STATUS_IN_PREP)
    assert client_for(nurse_user).get(form_url(case, 'anaesthesia-chart')).status_code == 404


def test_author_role_is_enforced(doctor_user, other_doctor_user, nurse_user, client_for, make_case):
    case = make_case(SurgicalCase.STATUS_IN_THEATER)
    assert draft(client_for(doctor_user), case, 'intraop', INTRAOP).status_code == 403
    assert draft(client_for(nurse_user), case, 'operative-note', {}).status_code == 403
    assert draft(client_for(other_doctor_user), case, 'operative-note', {}).status_code == 403
    assert draft(client_for(doctor_user), case, 'operative-note', {}).status_code == 200


def test_count_discrepancy_needs_notes_and_blocks_recovery(nurse_user, theater_user, client_for, make_case):
    case = make_case(SurgicalCase.STATUS_IN_THEATER)
    nurse = client_for(nurse_user)
    data = copy.deepcopy(INTRAOP)
    data['counts']['countDiscrepancy'] = True
    draft(nurse, case, 'intraop', data)

    r = nurse.post(form_url(case, 'intraop', 'finalize'))
    assert r.data['error']['code'] == 'clinical_gate_failed'
    assert any('discrepancyNotes' in item for item in r.data['error']['details']['missingItems'])

    data['counts']['discrepancyNotes'] = 'One swab unaccounted for, x-ray requested'
    draft(nurse, case, 'intraop', data)
    assert nurse.post(form_url(case, 'intraop', 'finalize')).status_code == 200

    r = client_for(theater_user).post(f'/api/surgical-cases/{case.id}/transition', {'action': 'RECOVERY'},
                                      format='json')
    assert r.status_code == 400
    assert 'Count discrepancy flagged - resolve before RECOVERY' in r.data['error']['details']['missingItems']


def test_operative_note_cannot_contradict_nurse_counts(doctor_user, nurse_user, client_for, make_case):
    case = make_case(SurgicalCase.STATUS_IN_THEATER)
    data = copy.deepcopy(INTRAOP)
    data['counts'].update(countDiscrepancy=True, discrepancyNotes='Needle missing at closure')
    draft(client_for(nurse_user), case, 'intraop', data)

    note = {
        'header': {'diagnosisPreOp': 'Symptomatic gallstones', 'procedurePerformed': 'Lap chole',
                   'surgeonId': str(doctor_user.id), 'anesthesiaType': 'GENERAL'},
        'findingsAndSteps': {'operativeSteps': 'Four port access, calot triangle dissected, cystic duct clipped'},
        'intraOpMetrics': {'estimatedBloodLossMl': 50},
        'complications': {'complicationsOccurred': False},
        'countsConfirmation': {'countsCorrect': True},
    }
    doctor = client_for(doctor_user)
    draft(doctor, case, 'operative-note', note)
    r = doctor.post(form_url(case, 'operative-note', 'finalize'))
    assert r.status_code == 400
    assert any(item.startswith('countsConfirmation.countsCorrect') for item in r.data['error']['details']['missingItems'])

    note['countsConfirmation'] = {'countsCorrect': False, 'countsExplanation': 'Needle missing, x-ray clear'}
    draft(doctor, case, 'operative-note', note)
    assert doctor.post(form_url(case, 'operative-note', 'finalize')).status_code == 200


def test_full_theater_day(nurse_user, theater_user, client_for, make_case):
    case = make_case(SurgicalCase.STATUS_SCHEDULED)
    nurse, tech = client_for(nurse_user), client_for(theater_user)

    def move(action):
        return tech.post(f'/api/surgical-cases/{case.id}/transition', {'action': action}, format='json')

    assert move('IN_PREP').status_code == 200
    draft(nurse, case, 'preop-ward', PREOP)
    nurse.post(form_url(case, 'preop-ward', 'finalize'))
    assert move('IN_THEATER').status_code == 200
    draft(nurse, case, 'intraop', INTRAOP)
    nurse.post(form_url(case, 'intraop', 'finalize'))
    assert move('RECOVERY').status_code == 200

    hold = copy.deepcopy(RECOVERY)
    hold['dischargeReadiness']['dischargeDecision'] = 'HOLD'
    draft(nurse, case, 'recovery', hold)
    nurse.post(form_url(case, 'recovery', 'finalize'))
    r = move('COMPLETED')
    assert r.status_code == 400
    assert 'Discharge decision is HOLD - patient cannot be discharged' in r.data['error']['details']['missingItems']

    case.refresh_from_db()
    assert case.status == SurgicalCase.STATUS_RECOVERY
    assert case.wheels_in_at and case.wheels_out_at


def test_recovery_record_completes_case(nurse_user, theater_user, client_for, make_case):
    case = make_case(SurgicalCase.STATUS_RECOVERY)
    nurse = client_for(nurse_user)
    draft(nurse, case, 'recovery', RECOVERY)
    assert nurse.post(form_url(case, 'recovery', 'finalize')).status_code == 200
    r = client_for(theater_user).post(f'/api/surgical-cases/{case.id}/transition', {'action': 'COMPLETED'},
                                      format='json')
    assert r.status_code == 200
    assert r.data['data']['status'] == SurgicalCase.STATUS_COMPLETED


def test_forms_on_cancelled_case_are_read_only(nurse_user, client_for, make_case):
    case = make_case(SurgicalCase.STATUS_CANCELLED)
    r = draft(client_for(nurse_user), case, 'preop-ward', PREOP)
    assert r.status_code == 400
    assert r.data['error']['code'] == 'domain_error'


def test_flatten_errors_paths():
    errors = {'counts': {'discrepancyNotes': ['Required']}, 'specimens': {'specimens': [{}, {'site': ['Bad']}]}}
    assert flatten_errors(errors) == ['counts.discrepancyNotes: Required', 'specimens.specimens.1.site: Bad']
