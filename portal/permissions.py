"""
Role based permission classes.
"""
from rest_framework.permissions import BasePermission

RESPONDER_ROLES = {"doctor", "admin"}


class IsResponder(BasePermission):
    """Doctors and administrators, who handle emergencies."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and getattr(user, "role", None) in RESPONDER_ROLES)
