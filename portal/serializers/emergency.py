from django.contrib.auth import get_user_model
from rest_framework import serializers

from portal.models import Doctor, EmergencyLog

User = get_user_model()


class EmergencyLogSerializer(serializers.ModelSerializer):
    userId = serializers.PrimaryKeyRelatedField(
        source='user', queryset=User.objects.all(), required=False, allow_null=True,
        pk_field=serializers.UUIDField(format='hex_verbose'),
    )
    emergencyType = serializers.ChoiceField(source='emergency_type', choices=EmergencyLog.LEVEL_CHOICES)
    symptoms = serializers.ListField(child=serializers.CharField(max_length=200), required=False)
    aiAssessment = serializers.JSONField(source='ai_assessment', required=False, allow_null=True)
    actionTaken = serializers.ChoiceField(
        source='action_taken', choices=EmergencyLog.ACTION_CHOICES, required=False, allow_blank=True,
    )
    isResolved = serializers.BooleanField(source='is_resolved', read_only=True)
    assignedDoctorId = serializers.PrimaryKeyRelatedField(
        source='assigned_doctor', read_only=True, pk_field=serializers.UUIDField(format='hex_verbose'),
    )
    emergencyContact = serializers.CharField(source='emergency_contact', max_length=255, required=False, allow_blank=True)
    location = serializers.CharField(max_length=255, required=False, allow_blank=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    resolvedAt = serializers.DateTimeField(source='resolved_at', read_only=True)

    class Meta:
        model = EmergencyLog
        fields = [
            'id', 'userId', 'emergencyType', 'symptoms', 'aiAssessment', 'actionTaken', 'isResolved',
            'assignedDoctorId', 'emergencyContact', 'location', 'createdAt', 'resolvedAt',
        ]


class EmergencyEnvelopeSerializer(serializers.Serializer):
    """Relay ``emergency`` envelope.

    ``emergencyData`` is validated against :class:`EmergencyLogSerializer`;
    a missing ``userId`` is taken from ``context['user_id']`` (the connection
    binding) when present.
    """
    emergencyData = serializers.DictField()

    def validate_emergencyData(self, value):
        data = dict(value)
        default_user = self.context.get('user_id')
        if not data.get('userId') and default_user:
            data['userId'] = default_user
        inner = EmergencyLogSerializer(data=data)
        inner.is_valid(raise_exception=True)
        return inner.validated_data


class ResolveEmergencySerializer(serializers.Serializer):
    assignedDoctorId = serializers.PrimaryKeyRelatedField(queryset=Doctor.objects.all(), required=False, allow_null=True)
