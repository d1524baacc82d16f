from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from portal.serializers.ai import AnalyzeSymptomsSerializer, PredictionSerializer
from portal.services import ai
from portal.services.predictions import list_predictions, predict
from portal.views.ai import ai_failure_response


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def predictions(request):
    if request.method == 'GET':
        return Response(PredictionSerializer(list_predictions(request.user), many=True).data)

    s = AnalyzeSymptomsSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    try:
        prediction, analysis = predict(
            request.user, vd['symptoms'], vd['duration'], vd['severity'], vd.get('additionalContext') or None,
        )
    except ai.AIServiceError as e:
        return ai_failure_response(e)
    return Response({'prediction': PredictionSerializer(prediction).data, 'analysis': analysis.as_dict()}, status=201)

predictions.cls.throttle_scope = 'ai'
