"""
Dashboard counters for the portal's landing page.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from portal.services.dashboard import dashboard_stats


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dashboard_stats_view(request):
    """Counts of recent chats, open emergencies, available doctors and live relay clients.

    Served from cache; ``refresh_caches`` recomputes the values and notifies
    ``ws/updates/`` subscribers.
    """
    return Response(dashboard_stats())
