"""
URL mappings for the HealthConnect REST API.

Paths follow the portal front-end; trailing slashes are omitted
(``APPEND_SLASH`` is off).  The chat relay itself is routed in
``healthconnect.asgi``.
"""
from django.urls import path, include

from .views import ai, auth, chat, dashboard, emergency, health, prediction

urlpatterns = [
    # auth & profile
    path('api/auth/login', auth.login_view, name='login_view'),
    path('api/auth/user', auth.current_user, name='current_user'),
    path('api/user/profile', auth.update_profile, name='update_profile'),

    path('api/dashboard/stats', dashboard.dashboard_stats_view, name='dashboard_stats_view'),

    # chat history (live chat goes through ws/)
    path('api/chat/message', chat.chat_message_create, name='chat_message_create'),
    path('api/chat/messages', chat.chat_messages, name='chat_messages'),

    # AI
    path('api/ai/analyze-symptoms', ai.analyze_symptoms, name='analyze_symptoms'),
    path('api/ai/chat', ai.ai_chat, name='ai_chat'),

    # emergencies
    path('api/emergency', emergency.emergencies, name='emergencies'),
    path('api/emergency/active', emergency.active_emergencies, name='active_emergencies'),
    path('api/emergency/<uuid:emergency_id>/resolve', emergency.emergency_resolve, name='emergency_resolve'),

    path('api/prediction', prediction.predictions, name='predictions'),

    # ops
    path('healthz', health.healthz, name='healthz'),
    path('', include('django_prometheus.urls')),
]
