from datetime import timedelta

from django.conf import settings
from django.core.cache import cache
from django.utils import timezone

from portal.models import ChatMessage, Doctor, EmergencyLog
from portal.realtime.registry import registry

STATS_CACHE_KEY = 'dashboard:stats'


def compute_stats(now=None) -> dict:
    now = now or timezone.now()
    return {
        'activeChatCount': ChatMessage.objects.filter(created_at__gte=now - timedelta(hours=24)).count(),
        'emergencyCount': EmergencyLog.objects.filter(is_resolved=False).count(),
        'availableDoctorCount': Doctor.objects.filter(is_available=True).count(),
        'connectedClients': registry.count(),
    }


def dashboard_stats(*, refresh: bool = False) -> dict:
    if not refresh:
        cached = cache.get(STATS_CACHE_KEY)
        if cached is not None:
            return cached
    stats = compute_stats()
    cache.set(STATS_CACHE_KEY, stats, settings.DASHBOARD_CACHE_SECONDS)
    return stats
