#!/usr/bin/env python
"""
Command-line entry point for the HealthConnect backend.

Points Django at ``healthconnect.settings`` and hands over to the management
utility (``runserver``, ``migrate``, ``ensure_demo_users``, ``refresh_caches``).
Run the chat relay under an ASGI server, e.g. ``daphne healthconnect.asgi:application``.
"""
import os
import sys


def main() -> None:
    """Run administrative tasks for the HealthConnect project."""
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'healthconnect.settings')
    try:
        from django.core.management import execute_from_command_line  # type: ignore
    except ImportError as exc:
        raise ImportError(
            "Couldn't import Django. Are you sure it's installed and "
            "available on your PYTHONPATH environment variable? Did you "
            "forget to activate a virtual environment?"
        ) from exc
    execute_from_command_line(sys.argv)


if __name__ == '__main__':
    main()
