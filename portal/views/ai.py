"""
Direct AI endpoints.  Collaborator failures map to 502, timeouts to 504.
"""
import logging

from asgiref.sync import async_to_sync
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from portal.serializers.ai import AIChatSerializer, AnalyzeSymptomsSerializer
from portal.services import ai

logger = logging.getLogger(__name__)


def ai_failure_response(exc: ai.AIServiceError) -> Response:
    if isinstance(exc, ai.AITimeout):
        logger.warning("AI request timed out: %s", exc)
        return Response({'ok': False, 'detail': 'AI assistant did not respond in time'}, status=504)
    logger.error("AI request failed: %s", exc)
    return Response({'ok': False, 'detail': 'AI assistant is unavailable'}, status=502)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def analyze_symptoms(request):
    s = AnalyzeSymptomsSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    try:
        analysis = async_to_sync(ai.analyze_symptoms)(
            vd['symptoms'], vd['duration'], vd['severity'], vd.get('additionalContext') or None,
        )
    except ai.AIServiceError as e:
        return ai_failure_response(e)
    return Response(analysis.as_dict())

analyze_symptoms.cls.throttle_scope = 'ai'


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def ai_chat(request):
    s = AIChatSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    history = [dict(item) for item in s.validated_data.get('conversationHistory', [])]
    try:
        response = async_to_sync(ai.generate_chat_response)(s.validated_data['message'], history)
    except ai.AIServiceError as e:
        return ai_failure_response(e)
    return Response(response.as_dict())

ai_chat.cls.throttle_scope = 'ai'
