"""
Token authentication for the REST API.

The WebSocket relay authenticates with the same tokens (passed as the
``token`` query parameter, see :mod:`portal.realtime.middleware`), so both
transports share one credential.
"""
from __future__ import annotations

from rest_framework import authentication


class TokenAuthentication(authentication.TokenAuthentication):
    """Token authentication using the ``Token`` keyword.

    Kept as a subclass to provide a stable import path for the project's
    configuration.
    """

    keyword = 'Token'
