from django.core.management.base import BaseCommand
from services.ride_management import expire_stale_requests


class Command(BaseCommand):
    help = "Expire open ride requests that are past their expiry time."

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show how many requests would expire without changing them.",
        )

    def handle(self, *args, **options):
        if options["dry_run"]:
            from django.utils import timezone
            from rides.models import RideRequest

            stale = RideRequest.objects.filter(
                status=RideRequest.OPEN, expires_at__lte=timezone.now()
            ).count()
            self.stdout.write(self.style.WARNING(f"DRY RUN: Would expire {stale} ride request(s)."))
            return

        expired_count = expire_stale_requests()
        self.stdout.write(self.style.SUCCESS(f"Expired {expired_count} ride request(s)."))
