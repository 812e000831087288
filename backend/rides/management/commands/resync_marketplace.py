import logging

from django.core.management.base import BaseCommand
from django.db import transaction

from drivers.models import Driver
from passengers.models import Passenger
from services.ratings.aggregator import aggregate_rating, recompute_user_rating
from services.verification import derive_verified, refresh_driver_verification

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Recompute driver verification flags and profile ratings from their full history."

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Report drifted profiles without writing anything.",
        )

    def handle(self, *args, **options):
        dry_run = options["dry_run"]

        verification_drift = 0
        for driver in Driver.objects.order_by("id").iterator():
            verified = derive_verified(driver)
            if verified == driver.is_verified:
                continue
            verification_drift += 1
            self.stdout.write(f"Driver {driver.id}: is_verified {driver.is_verified} -> {verified}")
            if not dry_run:
                with transaction.atomic():
                    refresh_driver_verification(driver)

        rating_drift = 0
        for role, model in (("passenger", Passenger), ("driver", Driver)):
            for profile in model.objects.order_by("id").iterator():
                average, count = aggregate_rating(role, profile.id)
                if average == profile.rating and count == profile.total_rides:
                    continue
                rating_drift += 1
                self.stdout.write(
                    f"{role.capitalize()} {profile.id}: rating {profile.rating}/{profile.total_rides}"
                    f" -> {average}/{count}"
                )
                if not dry_run:
                    with transaction.atomic():
                        recompute_user_rating(role, profile.id)

        summary = f"{verification_drift} verification flag(s) and {rating_drift} rating(s) out of sync."
        if dry_run:
            self.stdout.write(self.style.WARNING(f"DRY RUN: {summary}"))
        else:
            logger.info("Marketplace resync: %s", summary)
            self.stdout.write(self.style.SUCCESS(f"Repaired {summary}"))
