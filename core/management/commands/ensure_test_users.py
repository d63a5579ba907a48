# core/management/commands/ensure_test_users.py
from django.core.management.base import BaseCommand
from django.contrib.auth.hashers import make_password
from core.models import Profile, User

TEST_SET = [
    ("superadmin", "superadmin@maktub.test", "super_admin"),
    ("admin1", "admin1@maktub.test", "admin"),
    ("supervisor1", "supervisor1@maktub.test", "supervisor"),
    ("empleado1", "empleado1@maktub.test", "employee"),
]

class Command(BaseCommand):
    help = "Ensure test users exist and password=Maktub123! (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument("--password", default="Maktub123!")

    def handle(self, *args, **opts):
        password = make_password(opts["password"])
        for username, email, role in TEST_SET:
            u, created = User.objects.get_or_create(
                username=username,
                defaults={"email": email, "role": role, "password": password, "is_active": True},
            )
            if not created:
                # reset password, activation and role
                u.password = password
                u.role = role
                u.is_active = True
                u.must_set_password = False
                u.save(update_fields=["password", "role", "is_active", "must_set_password"])
            Profile.objects.get_or_create(user=u)
            self.stdout.write(self.style.SUCCESS(f"ok: {username} <{email}> ({role})"))
        self.stdout.write(self.style.SUCCESS("All test users ensured."))
