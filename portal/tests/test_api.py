"""
REST API tests.

The AI collaborator is faked through the ``fake_ai`` fixture; no test talks
to OpenAI.
"""
from datetime import timedelta

import pytest
from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.core.management import call_command
from django.urls import reverse
from django.utils import timezone
from rest_framework.test import APIClient

from portal.models import AuditEvent, ChatMessage, DiseasePrediction, Doctor, EmergencyLog, User
from portal.services import ai

pytestmark = pytest.mark.django_db

PASSWORD = 'P@ssw0rd1'


# ---------------------------------------------------------------------------
# auth & profile
# ---------------------------------------------------------------------------

def test_login_returns_token_and_profile(patient):
    client = APIClient()
    r = client.post(reverse('login_view'), {'username': 'patient1', 'password': PASSWORD}, format='json')
    assert r.status_code == 200
    assert r.data['ok'] is True
    assert r.data['token']
    assert r.data['role'] == 'patient'
    assert r.data['user']['id'] == str(patient.pk)
    assert AuditEvent.objects.filter(action='login', user=patient, detail__result='ok').exists()

    client.credentials(HTTP_AUTHORIZATION=f"Token {r.data['token']}")
    me = client.get(reverse('current_user'))
    assert me.status_code == 200
    assert me.data['username'] == 'patient1'
    assert me.data['doctorId'] is None


def test_login_with_wrong_password_is_rejected_and_audited(patient):
    r = APIClient().post(reverse('login_view'), {'username': 'patient1', 'password': 'nope'}, format='json')
    assert r.status_code == 400
    assert r.data['ok'] is False
    assert AuditEvent.objects.filter(action='login', user=None, detail__result='fail').exists()


def test_login_ignores_role_in_payload(patient):
    r = APIClient().post(reverse('login_view'), {'username': 'patient1', 'password': PASSWORD, 'role': 'admin'}, format='json')
    assert r.status_code == 200
    patient.refresh_from_db()
    assert patient.role == 'patient'


def test_requests_without_token_use_unified_error_shape():
    r = APIClient().get(reverse('current_user'))
    assert r.status_code == 401
    assert r.data['ok'] is False
    assert r.data['error']['code'] == 'api_error'


def test_doctor_profile_exposes_doctor_id(doctor, client_for):
    r = client_for(doctor.user).get(reverse('current_user'))
    assert r.data['doctorId'] == str(doctor.pk)


def test_profile_update_is_partial_and_cannot_change_role(patient, client_for):
    r = client_for(patient).put(reverse('update_profile'), {
        'bloodType': 'O+',
        'allergies': ['penicillin'],
        'role': 'admin',
    }, format='json')
    assert r.status_code == 200
    assert r.data['user']['bloodType'] == 'O+'
    patient.refresh_from_db()
    assert patient.allergies == ['penicillin']
    assert patient.role == 'patient'


def test_profile_update_validates_fields(patient, client_for):
    r = client_for(patient).put(reverse('update_profile'), {'profileImageUrl': 'not a url'}, format='json')
    assert r.status_code == 400
    assert r.data['ok'] is False


# ---------------------------------------------------------------------------
# chat history
# ---------------------------------------------------------------------------

def test_post_and_list_chat_messages(patient, other_patient, doctor, client_for):
    client = client_for(patient)
    r = client.post(reverse('chat_message_create'), {'message': '<b>hello</b> there'}, format='json')
    assert r.status_code == 201
    assert r.data['message'] == 'hello there'
    assert r.data['sender'] == 'user'
    assert r.data['isFromAI'] is False

    client.post(reverse('chat_message_create'), {'message': 'to the doctor', 'doctorId': str(doctor.pk)}, format='json')
    ChatMessage.objects.record(user=other_patient, message='not yours', sender='user')

    listed = client.get(reverse('chat_messages'))
    assert [m['message'] for m in listed.data] == ['to the doctor', 'hello there']

    only_doctor = client.get(reverse('chat_messages'), {'doctorId': str(doctor.pk)})
    assert [m['message'] for m in only_doctor.data] == ['to the doctor']


def test_blank_chat_message_is_rejected(patient, client_for):
    r = client_for(patient).post(reverse('chat_message_create'), {'message': '   '}, format='json')
    assert r.status_code == 400
    assert r.data == {'ok': False, 'detail': 'empty_message'}
    assert ChatMessage.objects.count() == 0


def test_chat_message_over_limit_is_rejected(settings, patient, client_for):
    settings.CHAT_MESSAGE_MAX_LENGTH = 10
    r = client_for(patient).post(reverse('chat_message_create'), {'message': 'x' * 11}, format='json')
    assert r.status_code == 400
    assert r.data['detail'] == 'message_too_long'


def test_doctor_sender_requires_doctor():
    user = User.objects.create_user(username='u', password=PASSWORD)
    with pytest.raises(ValueError):
        ChatMessage.objects.record(user=user, message='hi', sender='doctor')
    with pytest.raises(ValueError):
        ChatMessage.objects.record(user=user, message='hi', sender='robot')


# ---------------------------------------------------------------------------
# AI
# ---------------------------------------------------------------------------

def test_analyze_symptoms(patient, client_for, fake_ai):
    r = client_for(patient).post(reverse('analyze_symptoms'), {
        'symptoms': ['runny nose', 'sneezing'], 'duration': '3 days', 'severity': 3,
    }, format='json')
    assert r.status_code == 200
    assert r.data['emergencyLevel'] == 'low'
    assert r.data['predictions'][0]['disease'] == 'Common cold'
    assert fake_ai.calls[0]['severity'] == 3


def test_analyze_symptoms_validates_severity(patient, client_for, fake_ai):
    r = client_for(patient).post(reverse('analyze_symptoms'), {
        'symptoms': ['cough'], 'duration': '1 day', 'severity': 11,
    }, format='json')
    assert r.status_code == 400
    assert fake_ai.calls == []


def test_ai_chat(patient, client_for, fake_ai):
    r = client_for(patient).post(reverse('ai_chat'), {
        'message': 'I feel dizzy',
        'conversationHistory': [{'role': 'user', 'content': 'hi'}],
    }, format='json')
    assert r.status_code == 200
    assert r.data['message'] == fake_ai.reply
    assert r.data['followupQuestions'] == ai.FOLLOWUP_QUESTIONS
    assert fake_ai.calls[0]['history'] == [{'role': 'user', 'content': 'hi'}]


@pytest.mark.parametrize('error, status', [
    (ai.AIServiceError('boom'), 502),
    (ai.AITimeout('slow'), 504),
])
def test_ai_chat_failures(patient, client_for, fake_ai, error, status):
    fake_ai.error = error
    r = client_for(patient).post(reverse('ai_chat'), {'message': 'hello'}, format='json')
    assert r.status_code == status
    assert r.data['ok'] is False


# ---------------------------------------------------------------------------
# emergencies
# ---------------------------------------------------------------------------

def test_create_emergency_always_logs_for_caller(patient, other_patient, client_for):
    patient.emergency_contact = '+1 555 0100'
    patient.save()
    r = client_for(patient).post(reverse('emergencies'), {
        'userId': str(other_patient.pk), 'emergencyType': 'high', 'symptoms': ['chest pain'],
    }, format='json')
    assert r.status_code == 201
    assert r.data['userId'] == str(patient.pk)
    assert r.data['emergencyContact'] == '+1 555 0100'
    assert AuditEvent.objects.filter(action='emergency_create', object_id=r.data['id']).exists()

    mine = client_for(patient).get(reverse('emergencies'))
    assert [e['id'] for e in mine.data] == [r.data['id']]
    assert client_for(other_patient).get(reverse('emergencies')).data == []


def test_active_emergencies_are_for_responders(patient, doctor, portal_admin, client_for):
    EmergencyLog.objects.create(user=patient, emergency_type='medium')
    EmergencyLog.objects.create(user=patient, emergency_type='low', is_resolved=True)

    assert client_for(patient).get(reverse('active_emergencies')).status_code == 403
    for responder in (doctor.user, portal_admin):
        r = client_for(responder).get(reverse('active_emergencies'))
        assert r.status_code == 200
        assert [e['emergencyType'] for e in r.data] == ['medium']


def test_resolve_emergency(patient, doctor, client_for):
    emergency = EmergencyLog.objects.create(user=patient, emergency_type='high')
    url = reverse('emergency_resolve', args=[emergency.id])
    client = client_for(doctor.user)

    r = client.put(url, {'assignedDoctorId': str(doctor.pk)}, format='json')
    assert r.status_code == 200
    assert r.data['isResolved'] is True
    assert r.data['assignedDoctorId'] == str(doctor.pk)
    assert r.data['resolvedAt']
    assert AuditEvent.objects.filter(action='emergency_resolve', object_id=str(emergency.id)).exists()

    again = client.put(url, {}, format='json')
    assert again.status_code == 409


def test_resolve_emergency_permissions_and_missing(patient, doctor, client_for):
    emergency = EmergencyLog.objects.create(user=patient, emergency_type='high')
    assert client_for(patient).put(reverse('emergency_resolve', args=[emergency.id]), {}, format='json').status_code == 403

    missing = client_for(doctor.user).put(
        reverse('emergency_resolve', args=['00000000-0000-0000-0000-000000000000']), {}, format='json',
    )
    assert missing.status_code == 404


# ---------------------------------------------------------------------------
# predictions
# ---------------------------------------------------------------------------

def test_prediction_is_stored(patient, client_for, fake_ai):
    client = client_for(patient)
    r = client.post(reverse('predictions'), {
        'symptoms': ['fever', 'cough'], 'duration': '2 days', 'severity': 5, 'additionalContext': 'recent travel',
    }, format='json')
    assert r.status_code == 201
    assert r.data['analysis']['emergencyLevel'] == 'low'
    stored = DiseasePrediction.objects.get()
    assert stored.user == patient
    assert stored.predictions[0]['disease'] == 'Common cold'
    assert stored.ai_analysis == 'Rest and hydrate.'

    listed = client.get(reverse('predictions'))
    assert [p['id'] for p in listed.data] == [str(stored.id)]


def test_prediction_failure_stores_nothing(patient, client_for, fake_ai):
    fake_ai.error = ai.AIServiceError('down')
    r = client_for(patient).post(reverse('predictions'), {
        'symptoms': ['fever'], 'duration': '1 day', 'severity': 2,
    }, format='json')
    assert r.status_code == 502
    assert DiseasePrediction.objects.count() == 0


# ---------------------------------------------------------------------------
# dashboard, health & commands
# ---------------------------------------------------------------------------

def test_dashboard_stats_are_cached(patient, doctor, client_for):
    ChatMessage.objects.record(user=patient, message='recent', sender='user')
    old = ChatMessage.objects.record(user=patient, message='old', sender='user')
    ChatMessage.objects.filter(id=old.id).update(created_at=timezone.now() - timedelta(days=2))
    EmergencyLog.objects.create(user=patient, emergency_type='high')
    Doctor.objects.create(
        user=User.objects.create_user(username='doctor2', password=PASSWORD, role='doctor'),
        specialization='ENT', license_number='LIC-2', is_available=False,
    )

    client = client_for(patient)
    r = client.get(reverse('dashboard_stats_view'))
    assert r.status_code == 200
    assert r.data == {'activeChatCount': 1, 'emergencyCount': 1, 'availableDoctorCount': 1, 'connectedClients': 0}

    EmergencyLog.objects.create(user=patient, emergency_type='low')
    assert client.get(reverse('dashboard_stats_view')).data['emergencyCount'] == 1


def test_refresh_caches_recomputes_and_notifies_updates_feed(patient, client_for):
    client = client_for(patient)
    assert client.get(reverse('dashboard_stats_view')).data['emergencyCount'] == 0
    EmergencyLog.objects.create(user=patient, emergency_type='high')

    layer = get_channel_layer()
    channel = async_to_sync(layer.new_channel)()
    async_to_sync(layer.group_add)('updates', channel)

    call_command('refresh_caches')

    assert client.get(reverse('dashboard_stats_view')).data['emergencyCount'] == 1
    event = async_to_sync(layer.receive)(channel)
    assert event['type'] == 'broadcast.refresh'
    assert event['stats']['emergencyCount'] == 1


def test_healthz():
    r = APIClient().get(reverse('healthz'))
    assert r.status_code == 200
    assert r.json() == {'ok': True, 'db': True, 'relayConnections': 0}


def test_ensure_demo_users_is_idempotent():
    call_command('ensure_demo_users')
    call_command('ensure_demo_users', password='changed-pass')

    assert User.objects.filter(username__in=['patient1', 'doctor1', 'admin1']).count() == 3
    assert Doctor.objects.filter(user__username='doctor1').count() == 1
    assert User.objects.get(username='admin1').check_password('changed-pass')
