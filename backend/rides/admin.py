"""Tells what to show in the Django admin interface for rides app"""

from django.contrib import admin
from .models import DriverOffer, Order, PriceNegotiation, Rating


class DriverOfferInline(admin.TabularInline):
    model = DriverOffer
    extra = 0
    fields = ['driver', 'offered_price', 'status', 'message', 'created_at']
    readonly_fields = fields


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """Order admin"""
    list_display = ['id', 'passenger', 'accepted_driver', 'status', 'suggested_price', 'final_price',
                    'created_at', 'accepted_at', 'completed_at']
    list_filter = ['status', 'created_at']
    search_fields = ['passenger__telegram_id', 'accepted_driver__telegram_id', 'from_address', 'to_address']
    readonly_fields = ['created_at', 'updated_at', 'accepted_at', 'started_at', 'completed_at', 'cancelled_at']
    date_hierarchy = 'created_at'
    inlines = [DriverOfferInline]


@admin.register(DriverOffer)
class DriverOfferAdmin(admin.ModelAdmin):
    list_display = ("id", "order", "driver", "offered_price", "status", "created_at", "responded_at")
    list_filter = ("status",)
    search_fields = ("order__id", "driver__telegram_id")


@admin.register(PriceNegotiation)
class PriceNegotiationAdmin(admin.ModelAdmin):
    list_display = ("id", "order", "from_user_type", "from_user_id", "to_user_type", "to_user_id",
                    "proposed_price", "status", "created_at")
    list_filter = ("status", "from_user_type")
    search_fields = ("order__id",)


@admin.register(Rating)
class RatingAdmin(admin.ModelAdmin):
    # Ratings feed aggregates; editing one here would not recompute them
    list_display = ("id", "order", "from_user_type", "from_user_id", "to_user_type", "to_user_id", "rating")
    list_filter = ("rating", "to_user_type")
    readonly_fields = ("order", "from_user_type", "from_user_id", "to_user_type", "to_user_id",
                       "rating", "comment", "created_at")
