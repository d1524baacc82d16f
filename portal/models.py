"""
Database models for the HealthConnect backend.

The relay only ever inserts :class:`ChatMessage` and :class:`EmergencyLog`
rows; everything else is read to resolve references or written by the REST
views.  Primary keys are UUIDs so that identifiers can travel in WebSocket
envelopes without leaking row counts.
"""
from __future__ import annotations

import uuid
from typing import Any, Optional

from django.contrib.auth.models import AbstractUser
from django.db import models
from django.db.models import Q
from django.utils import timezone


class User(AbstractUser):
    """Portal account with a role and the health details shown on the profile page.

    Roles: 'patient' (default), 'doctor' and 'admin'.  A doctor additionally
    owns a :class:`Doctor` profile.
    """
    ROLE_PATIENT = 'patient'
    ROLE_DOCTOR = 'doctor'
    ROLE_ADMIN = 'admin'
    ROLE_CHOICES = [
        (ROLE_PATIENT, 'Patient'),
        (ROLE_DOCTOR, 'Doctor'),
        (ROLE_ADMIN, 'Administrator'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=ROLE_PATIENT, db_index=True)
    phone = models.CharField(max_length=32, blank=True)
    blood_type = models.CharField(max_length=10, blank=True)
    emergency_contact = models.CharField(max_length=255, blank=True)
    medical_conditions = models.JSONField(default=list, blank=True)
    allergies = models.JSONField(default=list, blank=True)
    profile_image_url = models.URLField(max_length=512, blank=True)

    @property
    def is_responder(self) -> bool:
        return self.role in (self.ROLE_DOCTOR, self.ROLE_ADMIN)

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class Doctor(models.Model):
    """Professional profile attached to a user with the doctor role."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='doctor_profile')
    specialization = models.CharField(max_length=255)
    license_number = models.CharField(max_length=64, unique=True)
    hospital_affiliation = models.CharField(max_length=255, blank=True)
    is_available = models.BooleanField(default=True, db_index=True)
    consultation_fee = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    rating = models.DecimalField(max_digits=3, decimal_places=2, default=5)
    total_consultations = models.PositiveIntegerField(default=0)
    bio = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"Dr. {self.user.get_full_name() or self.user.username} ({self.specialization})"


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------

class ChatMessageQuerySet(models.QuerySet):
    def for_conversation(self, user_id, doctor_id=None):
        qs = self.filter(user_id=user_id)
        if doctor_id:
            return qs.filter(doctor_id=doctor_id)
        return qs

    def ai_conversation(self, user_id):
        """Messages exchanged between a user and the assistant (no doctor involved)."""
        return self.filter(user_id=user_id, doctor__isnull=True)


class ChatMessageManager(models.Manager.from_queryset(ChatMessageQuerySet)):  # type: ignore[misc]
    def record(
        self,
        *,
        user: Any,
        message: str,
        sender: str,
        doctor: Optional['Doctor'] = None,
        message_type: str = 'text',
        metadata: Optional[dict] = None,
    ) -> 'ChatMessage':
        """Create a message after checking the sender tag is consistent."""
        if sender not in ChatMessage.Sender.values:
            raise ValueError(f'unknown sender: {sender!r}')
        if sender == ChatMessage.Sender.DOCTOR and doctor is None:
            raise ValueError('doctor messages require a doctor')
        if message_type not in ChatMessage.MessageType.values:
            raise ValueError(f'unknown message type: {message_type!r}')
        return self.create(
            user=user,
            doctor=doctor,
            message=message,
            sender=sender,
            message_type=message_type,
            metadata=metadata,
        )


class ChatMessage(models.Model):
    """A single chat line.

    ``sender`` replaces the pair of ``isFromAI``/``isFromDoctor`` flags; the
    flags are still exposed as read-only properties for API consumers.
    """

    class Sender(models.TextChoices):
        USER = 'user', 'User'
        AI = 'ai', 'AI assistant'
        DOCTOR = 'doctor', 'Doctor'

    class MessageType(models.TextChoices):
        TEXT = 'text', 'Text'
        IMAGE = 'image', 'Image'
        FILE = 'file', 'File'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.CASCADE, related_name='chat_messages'
    )
    doctor = models.ForeignKey(
        Doctor, null=True, blank=True, on_delete=models.SET_NULL, related_name='chat_messages'
    )
    message = models.TextField()
    sender = models.CharField(max_length=10, choices=Sender.choices, default=Sender.USER)
    message_type = models.CharField(max_length=10, choices=MessageType.choices, default=MessageType.TEXT)
    # AI analysis payload, confidence scores etc.
    metadata = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    objects = ChatMessageManager()

    class Meta:
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['user', 'doctor', 'created_at'], name='chat_conversation_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(sender__in=['user', 'ai', 'doctor']),
                name='chat_message_sender_valid',
            ),
            models.CheckConstraint(
                condition=~Q(sender='doctor') | Q(doctor__isnull=False),
                name='chat_message_doctor_sender_has_doctor',
            ),
        ]

    @property
    def is_from_ai(self) -> bool:
        return self.sender == self.Sender.AI

    @property
    def is_from_doctor(self) -> bool:
        return self.sender == self.Sender.DOCTOR

    def __str__(self) -> str:
        return f"chat {self.id} {self.sender} user={self.user_id}"


# ---------------------------------------------------------------------------
# Emergencies & predictions
# ---------------------------------------------------------------------------

class EmergencyLog(models.Model):
    LEVEL_LOW = 'low'
    LEVEL_MEDIUM = 'medium'
    LEVEL_HIGH = 'high'
    LEVEL_CHOICES = ((LEVEL_LOW, 'low'), (LEVEL_MEDIUM, 'medium'), (LEVEL_HIGH, 'high'))

    ACTION_CHOICES = (
        ('self_care', 'self_care'),
        ('consultation', 'consultation'),
        ('emergency_call', 'emergency_call'),
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='emergency_logs'
    )
    emergency_type = models.CharField(max_length=10, choices=LEVEL_CHOICES)
    symptoms = models.JSONField(default=list, blank=True)
    ai_assessment = models.JSONField(null=True, blank=True)
    action_taken = models.CharField(max_length=20, choices=ACTION_CHOICES, blank=True)
    is_resolved = models.BooleanField(default=False, db_index=True)
    assigned_doctor = models.ForeignKey(
        Doctor, null=True, blank=True, on_delete=models.SET_NULL, related_name='assigned_emergencies'
    )
    emergency_contact = models.CharField(max_length=255, blank=True)
    location = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    resolved_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['is_resolved', 'created_at'], name='emergency_open_idx'),
        ]

    def __str__(self) -> str:
        return f"emergency {self.id} {self.emergency_type} resolved={self.is_resolved}"


class DiseasePrediction(models.Model):
    """Stored outcome of an AI symptom analysis."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(User, null=True, on_delete=models.CASCADE, related_name='predictions')
    symptoms = models.JSONField(default=list)
    duration = models.CharField(max_length=100, blank=True)
    severity = models.PositiveSmallIntegerField(null=True, blank=True)
    predictions = models.JSONField(default=list, blank=True)
    ai_analysis = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self) -> str:
        return f"prediction {self.id} user={self.user_id}"


class AuditEvent(models.Model):
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.CharField(max_length=64, blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='audit_action_created_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='audit_object_created_idx'),
        ]

    def __str__(self):
        return f"{self.action}:{self.user_id}@{self.created_at:%F %T}"
