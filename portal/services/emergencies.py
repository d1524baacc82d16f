from typing import Optional
import logging

from django.db import transaction
from django.utils import timezone

from portal.models import EmergencyLog, Doctor
from portal.services.audit import log_action

logger = logging.getLogger(__name__)


def record_emergency(validated: dict, *, actor=None) -> EmergencyLog:
    """Persist an emergency exactly as validated by ``EmergencyLogSerializer``."""
    emergency = EmergencyLog.objects.create(**validated)
    try:
        log_action(
            user=actor, action='emergency_create', object_type='emergency', object_id=emergency.id,
            detail={'level': emergency.emergency_type},
        )
    except Exception:
        logger.exception("audit write failed for emergency %s", emergency.id)
    logger.info("emergency %s logged (level=%s user=%s)", emergency.id, emergency.emergency_type, emergency.user_id)
    return emergency


def list_emergencies(user):
    return EmergencyLog.objects.filter(user=user).select_related('assigned_doctor')


def list_active_emergencies():
    return EmergencyLog.objects.filter(is_resolved=False).select_related('user', 'assigned_doctor')


@transaction.atomic
def resolve_emergency(emergency: EmergencyLog, *, actor, assigned_doctor: Optional[Doctor] = None) -> EmergencyLog:
    if emergency.is_resolved:
        raise ValueError('already_resolved')
    emergency.is_resolved = True
    emergency.resolved_at = timezone.now()
    fields = ['is_resolved', 'resolved_at']
    if assigned_doctor is not None:
        emergency.assigned_doctor = assigned_doctor
        fields.append('assigned_doctor')
    emergency.save(update_fields=fields)
    log_action(
        user=actor, action='emergency_resolve', object_type='emergency', object_id=emergency.id,
        detail={'assignedDoctorId': str(assigned_doctor.pk) if assigned_doctor else None},
    )
    return emergency
