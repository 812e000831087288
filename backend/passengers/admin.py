from django.contrib import admin
from passengers.models import Passenger


@admin.register(Passenger)
class PassengerAdmin(admin.ModelAdmin):
    """Admin panel for passengers. Rating fields are maintained by the rating aggregator."""

    list_display = ["telegram_id", "first_name", "phone_number", "rating", "total_rides", "created_at"]
    search_fields = ["telegram_id", "first_name", "phone_number"]
    readonly_fields = ["rating", "total_rides", "created_at", "updated_at"]
    ordering = ("-created_at",)
