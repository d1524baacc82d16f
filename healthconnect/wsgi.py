"""
WSGI config for the HealthConnect project.

It exposes the WSGI callable as a module-level variable named ``application``.
Only the REST API is reachable through WSGI; the chat relay needs the ASGI
entrypoint in ``healthconnect.asgi``.
"""
import os

from django.core.wsgi import get_wsgi_application  # type: ignore

# Set the default settings module for the 'django' program.
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'healthconnect.settings')

# Obtain the WSGI application for use by the server
application = get_wsgi_application()
