"""
AI collaborator: chat replies and symptom analysis through the OpenAI API.

The rest of the code treats this module as an opaque, possibly slow and
possibly failing remote service.  Every failure surfaces as
:class:`AIServiceError`; callers that must not hang use :func:`complete_chat`,
which bounds the call and reports a typed :class:`AIOutcome` instead of
raising.
"""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field, asdict
from typing import Any, Optional

from django.conf import settings
from openai import AsyncOpenAI, APITimeoutError, OpenAIError

logger = logging.getLogger(__name__)

CHAT_SYSTEM_PROMPT = (
    "You are an empathetic AI health assistant named HealthConnect AI. Help users with "
    "health-related questions, analyze symptoms, and provide preliminary medical guidance. "
    "Always recommend professional medical care for serious concerns. Be supportive and "
    "understanding. If symptoms suggest an emergency, clearly state this and recommend "
    "immediate medical attention."
)

ANALYSIS_SYSTEM_PROMPT = (
    "You are a medical AI assistant. Always prioritize patient safety and recommend "
    "professional medical care when appropriate. Provide responses in valid JSON format."
)

FALLBACK_REPLY = "I'm sorry, I couldn't process your message. Please try again."

SYMPTOM_KEYWORDS = ('pain', 'headache', 'fever', 'nausea', 'dizzy', 'cough', 'tired', 'fatigue', 'hurt', 'ache')

FOLLOWUP_QUESTIONS = [
    "How long have you been experiencing these symptoms?",
    "On a scale of 1-10, how severe is your discomfort?",
    "Have you taken any medication for this?",
    "Do you have any other symptoms I should know about?",
]

EMERGENCY_LEVELS = ('low', 'medium', 'high')


class AIServiceError(RuntimeError):
    """The AI collaborator failed or returned something unusable."""


class AITimeout(AIServiceError):
    """The AI collaborator did not answer in time."""


@dataclass
class Prediction:
    disease: str
    confidence: float
    description: str = ''


@dataclass
class SymptomAnalysis:
    emergency_level: str
    predictions: list[Prediction]
    recommendations: str
    should_see_doctor: bool
    should_call_emergency: bool

    def as_dict(self) -> dict:
        return {
            'emergencyLevel': self.emergency_level,
            'predictions': [asdict(p) for p in self.predictions],
            'recommendations': self.recommendations,
            'shouldSeeDoctor': self.should_see_doctor,
            'shouldCallEmergency': self.should_call_emergency,
        }


@dataclass
class ChatResponse:
    message: str
    analysis: Optional[SymptomAnalysis] = None
    followup_questions: Optional[list[str]] = None

    def as_dict(self) -> dict:
        return {
            'message': self.message,
            'analysis': self.analysis.as_dict() if self.analysis else None,
            'followupQuestions': self.followup_questions,
        }


@dataclass
class AIOutcome:
    """Result of a bounded AI call: exactly one of ``response``/``error`` is set."""
    STATUS_OK = 'ok'
    STATUS_TIMEOUT = 'timeout'
    STATUS_ERROR = 'error'

    status: str
    response: Optional[ChatResponse] = None
    error: str = ''

    @property
    def ok(self) -> bool:
        return self.status == self.STATUS_OK


def _client() -> AsyncOpenAI:
    if not settings.OPENAI_API_KEY:
        raise AIServiceError('OPENAI_API_KEY is not configured')
    # One client per call: the relay and the sync views (via async_to_sync) run on different loops.
    return AsyncOpenAI(api_key=settings.OPENAI_API_KEY, timeout=settings.AI_TIMEOUT_SECONDS, max_retries=0)


async def _complete(messages: list[dict], *, json_mode: bool = False) -> str:
    kwargs: dict[str, Any] = {'model': settings.OPENAI_MODEL, 'messages': messages}
    if json_mode:
        kwargs['response_format'] = {'type': 'json_object'}
    try:
        async with _client() as client:
            resp = await client.chat.completions.create(**kwargs)
    except APITimeoutError as e:
        raise AITimeout(str(e)) from e
    except OpenAIError as e:
        raise AIServiceError(str(e)) from e
    if not resp.choices:
        return ''
    return resp.choices[0].message.content or ''


def mentions_symptoms(text: str) -> bool:
    lowered = (text or '').lower()
    return any(k in lowered for k in SYMPTOM_KEYWORDS)


def _clean_history(history: Optional[list[dict]]) -> list[dict]:
    cleaned = []
    for item in history or []:
        role = item.get('role')
        content = item.get('content')
        if role in ('user', 'assistant') and isinstance(content, str) and content:
            cleaned.append({'role': role, 'content': content})
    return cleaned


async def generate_chat_response(message: str, history: Optional[list[dict]] = None) -> ChatResponse:
    """Conversational reply to ``message`` given the prior ``history`` turns."""
    messages = [
        {'role': 'system', 'content': CHAT_SYSTEM_PROMPT},
        *_clean_history(history),
        {'role': 'user', 'content': message},
    ]
    content = await _complete(messages)
    response = ChatResponse(message=content.strip() or FALLBACK_REPLY)
    if mentions_symptoms(message):
        response.followup_questions = list(FOLLOWUP_QUESTIONS)
    return response


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def parse_analysis(raw: str) -> SymptomAnalysis:
    """Turn the model's JSON into a :class:`SymptomAnalysis`.

    Missing or malformed fields fall back to the cautious side: unknown
    emergency levels become 'medium' and a doctor visit is recommended.
    """
    try:
        data = json.loads(raw or '{}')
    except json.JSONDecodeError as e:
        raise AIServiceError(f'model returned invalid JSON: {e}') from e
    if not isinstance(data, dict):
        raise AIServiceError('model returned a non-object JSON document')

    level = str(data.get('emergencyLevel', '')).lower()
    if level not in EMERGENCY_LEVELS:
        level = 'medium'

    predictions = []
    for p in data.get('predictions') or []:
        if not isinstance(p, dict) or not p.get('disease'):
            continue
        predictions.append(Prediction(
            disease=str(p['disease']),
            confidence=max(0.0, min(100.0, _to_float(p.get('confidence')))),
            description=str(p.get('description') or ''),
        ))

    return SymptomAnalysis(
        emergency_level=level,
        predictions=predictions,
        recommendations=str(data.get('recommendations') or ''),
        should_see_doctor=bool(data.get('shouldSeeDoctor', True)),
        should_call_emergency=bool(data.get('shouldCallEmergency', level == 'high')),
    )


async def analyze_symptoms(
    symptoms: list[str],
    duration: str,
    severity: int,
    additional_context: Optional[str] = None,
) -> SymptomAnalysis:
    prompt = (
        "As a medical AI assistant, analyze the following symptoms:\n"
        f"- Symptoms: {', '.join(symptoms)}\n"
        f"- Duration: {duration}\n"
        f"- Severity (1-10): {severity}\n"
        f"- Additional context: {additional_context or 'None'}\n\n"
        "Provide a comprehensive analysis in JSON format with:\n"
        "- emergencyLevel: 'low', 'medium', or 'high'\n"
        "- predictions: array of {disease, confidence (0-100), description}\n"
        "- recommendations: detailed advice for the patient\n"
        "- shouldSeeDoctor: boolean\n"
        "- shouldCallEmergency: boolean\n\n"
        "Be conservative with emergency assessments and always recommend professional "
        "medical advice when uncertain."
    )
    raw = await _complete(
        [{'role': 'system', 'content': ANALYSIS_SYSTEM_PROMPT}, {'role': 'user', 'content': prompt}],
        json_mode=True,
    )
    return parse_analysis(raw)


async def complete_chat(
    message: str,
    history: Optional[list[dict]] = None,
    *,
    timeout: Optional[float] = None,
) -> AIOutcome:
    """Bounded :func:`generate_chat_response` that never raises collaborator errors."""
    timeout = settings.AI_TIMEOUT_SECONDS if timeout is None else timeout
    try:
        response = await asyncio.wait_for(generate_chat_response(message, history), timeout)
    except (asyncio.TimeoutError, AITimeout):
        logger.warning("AI reply timed out after %.1fs", timeout)
        return AIOutcome(status=AIOutcome.STATUS_TIMEOUT, error='AI assistant did not respond in time')
    except AIServiceError as e:
        logger.error("AI reply failed: %s", e)
        return AIOutcome(status=AIOutcome.STATUS_ERROR, error=str(e))
    return AIOutcome(status=AIOutcome.STATUS_OK, response=response)
