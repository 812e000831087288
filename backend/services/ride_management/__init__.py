"""
Ride management service - Orders, offers and price negotiation.

This module handles:
    - Creating and listing orders
    - Driver offers and accepting one of them
    - Counter-offers between passenger and driver
    - Starting, completing and cancelling rides
"""

from .order_lifecycle import (
    create_order,
    list_available_orders,
    list_orders_for_driver,
    get_order,
    accept_offer,
    start_ride,
    complete_ride,
    cancel_order,
)
from .negotiation import (
    make_offer,
    list_offers,
    make_counter_offer,
    respond_to_counter_offer,
    respond_as_passenger,
    list_negotiations,
)

__all__ = [
    # Order lifecycle
    "create_order",
    "list_available_orders",
    "list_orders_for_driver",
    "get_order",
    "accept_offer",
    "start_ride",
    "complete_ride",
    "cancel_order",
    # Offers and negotiation
    "make_offer",
    "list_offers",
    "make_counter_offer",
    "respond_to_counter_offer",
    "respond_as_passenger",
    "list_negotiations",
]
