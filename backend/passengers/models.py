from decimal import Decimal

from django.db import models


class Passenger(models.Model):
    """Passenger profile keyed by the chat (Telegram) handle."""

    telegram_id = models.CharField(max_length=64, unique=True)
    first_name = models.CharField(max_length=150)
    phone_number = models.CharField(max_length=32)

    # Maintained by the rating aggregator
    rating = models.DecimalField(max_digits=3, decimal_places=2, default=Decimal("5.00"))
    total_rides = models.IntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'passengers'

    def __str__(self):
        return f"{self.first_name} ({self.telegram_id})"
