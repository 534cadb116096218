from django.conf import settings
from django.core.management.base import BaseCommand
from django_rq import get_scheduler

from jobs.tasks import cleanup_auth_logs


class Command(BaseCommand):
    help = "Apply rq-scheduler cron schedules for recurring maintenance jobs"

    def handle(self, *args, **options):
        scheduler = get_scheduler("default")
        # Clear existing cleanup jobs to avoid duplicates
        for job in scheduler.get_jobs():
            if job.func_name.endswith("cleanup_auth_logs"):
                scheduler.cancel(job)
        cron = settings.AUTH_LOG_CLEANUP_CRON
        scheduler.cron(cron, func=cleanup_auth_logs, repeat=None, queue_name="default")
        self.stdout.write(self.style.SUCCESS(f"Scheduled auth log cleanup with cron '{cron}'"))
