"""
Django admin registrations for the portal models.

Doctors have no REST management surface, so the admin is where their
profiles and availability are maintained.
"""

from django.contrib import admin

from .models import AuditEvent, ChatMessage, DiseasePrediction, Doctor, EmergencyLog, User


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'role', 'email', 'is_staff', 'is_superuser')
    list_filter = ('role', 'is_staff')
    search_fields = ('username', 'first_name', 'last_name', 'email')


@admin.register(Doctor)
class DoctorAdmin(admin.ModelAdmin):
    list_display = ('user', 'specialization', 'license_number', 'is_available', 'rating')
    list_filter = ('is_available', 'specialization')
    search_fields = ('user__username', 'license_number', 'hospital_affiliation')


@admin.register(ChatMessage)
class ChatMessageAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'doctor', 'sender', 'message_type', 'created_at')
    list_filter = ('sender', 'message_type')
    search_fields = ('user__username', 'message')


@admin.register(EmergencyLog)
class EmergencyLogAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'emergency_type', 'is_resolved', 'assigned_doctor', 'created_at', 'resolved_at')
    list_filter = ('emergency_type', 'is_resolved')
    search_fields = ('user__username', 'location')


@admin.register(DiseasePrediction)
class DiseasePredictionAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'severity', 'created_at')
    search_fields = ('user__username',)


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('action', 'user', 'object_type', 'object_id', 'created_at')
    list_filter = ('action', 'object_type')
    search_fields = ('object_id', 'user__username')
