import datetime

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from core.services.contracts import refresh_contract_states

class Command(BaseCommand):
    help = "Complete contracts in execution whose end date has passed; broadcasts a refresh per contract."

    def add_arguments(self, parser):
        parser.add_argument("--date", help="Reference date YYYY-MM-DD (defaults to today)")

    def handle(self, *args, **options):
        today = timezone.localdate()
        if options.get("date"):
            try:
                today = datetime.datetime.strptime(options["date"], "%Y-%m-%d").date()
            except ValueError:
                raise CommandError("--date must look like YYYY-MM-DD")
        count = refresh_contract_states(today)
        self.stdout.write(self.style.SUCCESS(f"Completed {count} expired contracts as of {today}"))
