import pytest
from django.core.cache import cache
from rest_framework.authtoken.models import Token
from rest_framework.test import APIClient

from portal.models import Doctor, User
from portal.realtime.registry import registry
from portal.services import ai

PASSWORD = 'P@ssw0rd1'


@pytest.fixture(autouse=True)
def _isolated_runtime(settings):
    # channels drops cached layer backends whenever CHANNEL_LAYERS changes
    settings.CHANNEL_LAYERS = {"default": {"BACKEND": "channels.layers.InMemoryChannelLayer"}}
    settings.RELAY_BROADCAST_SCOPE = 'room'
    settings.RELAY_REQUIRE_AUTH = False
    settings.OPENAI_API_KEY = ''
    cache.clear()
    registry.clear()
    yield
    registry.clear()


@pytest.fixture
def global_scope(settings):
    settings.RELAY_BROADCAST_SCOPE = 'global'


@pytest.fixture
def patient(db):
    return User.objects.create_user(username='patient1', password=PASSWORD, role=User.ROLE_PATIENT)


@pytest.fixture
def other_patient(db):
    return User.objects.create_user(username='patient2', password=PASSWORD, role=User.ROLE_PATIENT)


@pytest.fixture
def doctor(db):
    user = User.objects.create_user(username='doctor1', password=PASSWORD, role=User.ROLE_DOCTOR)
    return Doctor.objects.create(user=user, specialization='Cardiology', license_number='LIC-1')


@pytest.fixture
def portal_admin(db):
    return User.objects.create_user(username='admin1', password=PASSWORD, role=User.ROLE_ADMIN)


@pytest.fixture
def token_for(db):
    def _token(user):
        return Token.objects.get_or_create(user=user)[0].key
    return _token


@pytest.fixture
def client_for(token_for):
    def _client(user=None):
        client = APIClient()
        if user is not None:
            client.credentials(HTTP_AUTHORIZATION=f'Token {token_for(user)}')
        return client
    return _client


class FakeAI:
    """Stands in for the OpenAI-backed collaborator and records its calls."""

    def __init__(self):
        self.calls = []
        self.reply = 'Please rest and drink plenty of fluids.'
        self.analysis = None
        self.error = None

    async def generate_chat_response(self, message, history=None):
        self.calls.append({'message': message, 'history': list(history or [])})
        if self.error is not None:
            raise self.error
        return ai.ChatResponse(
            message=self.reply,
            analysis=self.analysis,
            followup_questions=list(ai.FOLLOWUP_QUESTIONS) if ai.mentions_symptoms(message) else None,
        )

    async def analyze_symptoms(self, symptoms, duration, severity, additional_context=None):
        self.calls.append({'symptoms': symptoms, 'duration': duration, 'severity': severity})
        if self.error is not None:
            raise self.error
        return self.analysis or ai.SymptomAnalysis(
            emergency_level='low',
            predictions=[ai.Prediction(disease='Common cold', confidence=72.0, description='Viral infection')],
            recommendations='Rest and hydrate.',
            should_see_doctor=False,
            should_call_emergency=False,
        )


@pytest.fixture
def fake_ai(monkeypatch):
    fake = FakeAI()
    monkeypatch.setattr(ai, 'generate_chat_response', fake.generate_chat_response)
    monkeypatch.setattr(ai, 'analyze_symptoms', fake.analyze_symptoms)
    return fake
