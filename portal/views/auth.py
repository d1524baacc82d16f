"""
Login and profile endpoints.

Login hands out the DRF token that both the REST API (``Authorization:
Token <key>``) and the chat relay (``ws/?token=<key>``) accept.
"""
from __future__ import annotations

import logging

from django.contrib.auth import authenticate
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from portal.serializers.auth import LoginSerializer, ProfileUpdateSerializer, UserSerializer
from portal.services.audit import log_action

logger = logging.getLogger(__name__)


def _audit_login(request, user, username, result):
    try:
        log_action(user=user, action='login', object_type='user', object_id=getattr(user, 'pk', None),
                   detail={'result': result, 'username': username, 'ip': request.META.get('REMOTE_ADDR')})
    except Exception:
        logger.exception("audit write failed for login of %s", username)


@api_view(['POST'])
@permission_classes([AllowAny])
def login_view(request):
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    username = s.validated_data['username']

    user = authenticate(request, username=username, password=s.validated_data['password'])
    if not user:
        _audit_login(request, None, username, 'fail')
        return Response({'ok': False, 'detail': 'invalid username or password'}, status=400)
    _audit_login(request, user, username, 'ok')

    token, _ = Token.objects.get_or_create(user=user)
    return Response({
        'ok': True,
        'token': token.key,
        'role': user.role,
        'user': UserSerializer(user).data,
    })

# ScopedRateThrottle reads throttle_scope from the view instance
login_view.cls.throttle_scope = 'login'


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def current_user(request):
    return Response(UserSerializer(request.user).data)


@api_view(['PUT', 'PATCH'])
@permission_classes([IsAuthenticated])
def update_profile(request):
    s = ProfileUpdateSerializer(request.user, data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    user = s.save()
    return Response({'ok': True, 'user': UserSerializer(user).data})
