from rest_framework import serializers

from portal.models import DiseasePrediction
from portal.serializers.chat import HistoryItemSerializer


class AnalyzeSymptomsSerializer(serializers.Serializer):
    symptoms = serializers.ListField(child=serializers.CharField(max_length=200), min_length=1, max_length=50)
    duration = serializers.CharField(max_length=100)
    severity = serializers.IntegerField(min_value=1, max_value=10)
    additionalContext = serializers.CharField(max_length=2000, required=False, allow_blank=True)


class AIChatSerializer(serializers.Serializer):
    message = serializers.CharField(max_length=2000)
    conversationHistory = HistoryItemSerializer(many=True, required=False)


class PredictionSerializer(serializers.ModelSerializer):
    userId = serializers.UUIDField(source='user_id', read_only=True)
    aiAnalysis = serializers.CharField(source='ai_analysis', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = DiseasePrediction
        fields = ['id', 'userId', 'symptoms', 'duration', 'severity', 'predictions', 'aiAnalysis', 'createdAt']
        read_only_fields = fields
