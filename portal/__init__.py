"""Portal application for the HealthConnect backend.

This package contains the models, serializers, REST views, the WebSocket
chat relay and the AI collaborator used by the healthcare portal front-end.
"""
