from django.contrib.auth import get_user_model
from rest_framework import serializers

User = get_user_model()


class LoginSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = serializers.CharField(trim_whitespace=False)

    def validate_username(self, v):
        v = (v or '').strip()
        if not v:
            raise serializers.ValidationError('username is required')
        return v

    def validate_password(self, v):
        if not v:
            raise serializers.ValidationError('password is required')
        return v


class UserSerializer(serializers.ModelSerializer):
    firstName = serializers.CharField(source='first_name', read_only=True)
    lastName = serializers.CharField(source='last_name', read_only=True)
    bloodType = serializers.CharField(source='blood_type', read_only=True)
    emergencyContact = serializers.CharField(source='emergency_contact', read_only=True)
    medicalConditions = serializers.JSONField(source='medical_conditions', read_only=True)
    profileImageUrl = serializers.CharField(source='profile_image_url', read_only=True)
    doctorId = serializers.SerializerMethodField()
    dateJoined = serializers.DateTimeField(source='date_joined', read_only=True)

    class Meta:
        model = User
        fields = [
            'id', 'username', 'email', 'firstName', 'lastName', 'role', 'phone', 'bloodType',
            'emergencyContact', 'medicalConditions', 'allergies', 'profileImageUrl', 'doctorId',
            'dateJoined',
        ]
        read_only_fields = fields

    def get_doctorId(self, obj):
        doctor = getattr(obj, 'doctor_profile', None)
        return str(doctor.pk) if doctor else None


class ProfileUpdateSerializer(serializers.ModelSerializer):
    firstName = serializers.CharField(source='first_name', max_length=150, required=False, allow_blank=True)
    lastName = serializers.CharField(source='last_name', max_length=150, required=False, allow_blank=True)
    bloodType = serializers.CharField(source='blood_type', max_length=10, required=False, allow_blank=True)
    emergencyContact = serializers.CharField(source='emergency_contact', max_length=255, required=False, allow_blank=True)
    medicalConditions = serializers.ListField(
        source='medical_conditions', child=serializers.CharField(max_length=200), required=False,
    )
    allergies = serializers.ListField(child=serializers.CharField(max_length=200), required=False)
    profileImageUrl = serializers.URLField(source='profile_image_url', max_length=512, required=False, allow_blank=True)

    class Meta:
        model = User
        fields = [
            'email', 'firstName', 'lastName', 'phone', 'bloodType', 'emergencyContact',
            'medicalConditions', 'allergies', 'profileImageUrl',
        ]
        extra_kwargs = {'email': {'required': False}, 'phone': {'required': False}}
