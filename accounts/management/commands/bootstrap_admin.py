import os

from django.core.management.base import BaseCommand, CommandError

from accounts.models import AdminAccount


class Command(BaseCommand):
    help = "Create the administrator account if it does not exist yet."

    def add_arguments(self, parser):
        parser.add_argument("--name", default=os.getenv("ADMIN_NAME"), help="Admin login name (default: $ADMIN_NAME)")
        parser.add_argument(
            "--password",
            default=os.getenv("ADMIN_PASSWORD"),
            help="Admin password (default: $ADMIN_PASSWORD)",
        )

    def handle(self, *args, **options):
        name = (options.get("name") or "").strip()
        password = options.get("password") or ""
        if not name or not password:
            raise CommandError("Both --name and --password (or ADMIN_NAME / ADMIN_PASSWORD) are required.")

        account = AdminAccount(name=name)
        account.set_password(password)
        _, created = AdminAccount.objects.get_or_create(
            name=name,
            defaults={"password_hash": account.password_hash, "role": AdminAccount.ROLE_ADMIN},
        )
        if created:
            self.stdout.write(self.style.SUCCESS(f"Created admin account '{name}'."))
        else:
            self.stdout.write(f"Admin account '{name}' already exists; left unchanged.")
