from typing import Optional

from asgiref.sync import async_to_sync

from portal.models import DiseasePrediction
from portal.services import ai


def predict(user, symptoms: list[str], duration: str, severity: int, context: Optional[str] = None):
    """Run a symptom analysis and store it.  Returns ``(prediction, analysis)``.

    AI failures propagate as :class:`ai.AIServiceError`; nothing is stored then.
    """
    analysis = async_to_sync(ai.analyze_symptoms)(symptoms, duration, severity, context)
    prediction = DiseasePrediction.objects.create(
        user=user,
        symptoms=symptoms,
        duration=duration,
        severity=severity,
        predictions=analysis.as_dict()['predictions'],
        ai_analysis=analysis.recommendations,
    )
    return prediction, analysis


def list_predictions(user):
    return DiseasePrediction.objects.filter(user=user)
