from django.core.management.base import BaseCommand
from django.contrib.auth.hashers import make_password
from django.db import transaction

from portal.models import Doctor, User

DEMO_PASSWORD = "healthconnect123"

DEMO_USERS = [
    ("patient1", User.ROLE_PATIENT),
    ("doctor1", User.ROLE_DOCTOR),
    ("admin1", User.ROLE_ADMIN),
]

DEMO_DOCTOR = {
    "specialization": "General Practice",
    "license_number": "DEMO-0001",
    "hospital_affiliation": "HealthConnect Clinic",
}


class Command(BaseCommand):
    help = "Ensure demo users exist with a known password (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument("--password", default=DEMO_PASSWORD)

    @transaction.atomic
    def handle(self, *args, **opts):
        password = make_password(opts["password"])
        for username, role in DEMO_USERS:
            u, created = User.objects.get_or_create(
                username=username,
                defaults={"role": role, "password": password, "is_active": True},
            )
            if not created:
                # reset password, role and activation
                u.password = password
                u.role = role
                u.is_active = True
                u.save(update_fields=["password", "role", "is_active"])
            if role == User.ROLE_DOCTOR:
                Doctor.objects.get_or_create(user=u, defaults=DEMO_DOCTOR)
            self.stdout.write(self.style.SUCCESS(f"ok: {username} ({role})"))
        self.stdout.write(self.style.SUCCESS("All demo users ensured."))
