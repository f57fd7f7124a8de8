from django.core.management.base import BaseCommand
from django.utils import timezone

from clinic.services.dashboards import ADMIN_STATS_KEY, admin_stats


class Command(BaseCommand):
    help = "Recompute and store the cached dashboard read models."

    def handle(self, *args, **options):
        now = timezone.now()
        admin_stats(refresh=True)
        self.stdout.write(self.style.SUCCESS(f"Refreshed {ADMIN_STATS_KEY} at {now}"))
