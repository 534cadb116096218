from django.conf import settings
from django.core.management.base import BaseCommand

from audit.services import cleanup


class Command(BaseCommand):
    help = "Delete auth log rows older than the retention window"

    def add_arguments(self, parser):
        parser.add_argument(
            "--days",
            type=int,
            default=None,
            help=f"Retention in days (default {settings.AUTH_LOG_RETENTION_DAYS})",
        )

    def handle(self, *args, **options):
        deleted = cleanup(options["days"])
        self.stdout.write(self.style.SUCCESS(f"Deleted {deleted} auth log rows"))
