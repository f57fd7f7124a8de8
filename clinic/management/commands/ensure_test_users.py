# clinic/management/commands/ensure_test_users.py
from django.contrib.auth.hashers import make_password
from django.core.management.base import BaseCommand

from clinic.models import Doctor, Theater, User

TEST_SET = [
    ("admin1", User.ROLE_ADMIN),
    ("doctor1", User.ROLE_DOCTOR),
    ("nurse1", User.ROLE_NURSE),
    ("frontdesk1", User.ROLE_FRONTDESK),
    ("theater1", User.ROLE_THEATER_TECHNICIAN),
    ("cashier1", User.ROLE_CASHIER),
    ("lab1", User.ROLE_LAB_TECHNICIAN),
]


class Command(BaseCommand):
    help = "Ensure one ACTIVE test user per staff role exists (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument("--password", default="ClinicOps#2024")

    def handle(self, *args, **opts):
        password = make_password(opts["password"])
        for username, role in TEST_SET:
            u, created = User.objects.get_or_create(
                username=username,
                defaults={"role": role, "password": password, "is_active": True, "status": User.STATUS_ACTIVE},
            )
            if not created:
                u.password = password
                u.role = role
                u.is_active = True
                u.status = User.STATUS_ACTIVE
                u.save(update_fields=["password", "role", "is_active", "status"])
            if role == User.ROLE_DOCTOR:
                Doctor.objects.get_or_create(user=u, defaults={"name": username.title(), "specialization": "General Surgery"})
            self.stdout.write(self.style.SUCCESS(f"ok: {username} ({role})"))
        Theater.objects.get_or_create(name="Theater 1")
        self.stdout.write(self.style.SUCCESS("All test users ensured."))
