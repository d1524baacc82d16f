"""
WebSocket authentication from a ``?token=`` query parameter.

Browsers cannot set an ``Authorization`` header on a WebSocket handshake,
so the relay accepts the REST API token in the query string instead.  When
no (valid) token is supplied the scope keeps whatever user the session
middleware resolved, which is usually ``AnonymousUser``.
"""
import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from rest_framework.authtoken.models import Token

logger = logging.getLogger(__name__)


@database_sync_to_async
def get_user_for_token(key: str):
    try:
        token = Token.objects.select_related('user').get(key=key)
    except Token.DoesNotExist:
        return None
    if not token.user.is_active:
        return None
    return token.user


class QueryTokenAuthMiddleware(BaseMiddleware):
    async def __call__(self, scope, receive, send):
        query = parse_qs((scope.get('query_string') or b'').decode('latin-1'))
        key = (query.get('token') or [''])[0]
        if key:
            user = await get_user_for_token(key)
            if user is not None:
                scope = dict(scope, user=user)
            else:
                logger.info("websocket handshake with unknown token from %s", scope.get('client'))
        return await super().__call__(scope, receive, send)
