from django.contrib.auth import get_user_model
from rest_framework import serializers

from portal.models import ChatMessage, Doctor

User = get_user_model()


class ChatMessageSerializer(serializers.ModelSerializer):
    """Wire shape of a chat line, shared by REST responses and relay events."""
    userId = serializers.UUIDField(source='user_id', read_only=True)
    doctorId = serializers.UUIDField(source='doctor_id', read_only=True)
    isFromAI = serializers.BooleanField(source='is_from_ai', read_only=True)
    isFromDoctor = serializers.BooleanField(source='is_from_doctor', read_only=True)
    messageType = serializers.CharField(source='message_type', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = ChatMessage
        fields = [
            'id', 'userId', 'doctorId', 'message', 'sender', 'isFromAI', 'isFromDoctor',
            'messageType', 'metadata', 'createdAt',
        ]
        read_only_fields = fields


class ChatMessageCreateSerializer(serializers.Serializer):
    message = serializers.CharField(allow_blank=True)
    doctorId = serializers.PrimaryKeyRelatedField(queryset=Doctor.objects.all(), required=False, allow_null=True)
    messageType = serializers.ChoiceField(choices=ChatMessage.MessageType.choices, required=False)


class ChatListQuerySerializer(serializers.Serializer):
    doctorId = serializers.UUIDField(required=False)


class HistoryItemSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=['user', 'assistant'])
    content = serializers.CharField(max_length=8000)


class ChatEnvelopeSerializer(serializers.Serializer):
    userId = serializers.PrimaryKeyRelatedField(queryset=User.objects.all())
    doctorId = serializers.PrimaryKeyRelatedField(queryset=Doctor.objects.all(), required=False, allow_null=True)
    # emptiness is checked after sanitising so it can be reported separately
    message = serializers.CharField(allow_blank=True)
    messageType = serializers.ChoiceField(choices=ChatMessage.MessageType.choices, required=False)
    conversationHistory = HistoryItemSerializer(many=True, required=False)
