"""
Services package - Business logic layer.

This package contains the marketplace operations. They work on Django models
but know nothing about the HTTP layer; every public operation runs in one
transaction and returns a ServiceResult.

Modules:
    - identity: Passenger/driver registration and role classification
    - verification: Driver document ledger
    - ride_management: Orders, offers and price negotiation
    - ratings: Post-ride ratings and aggregate profile ratings
    - registry: Named operations exposed to the agent layer
"""

# Expose commonly used functions at package level
from .identity import (
    register_passenger,
    register_driver,
    set_driver_status,
    classify_role,
    resolve_role,
    RoleClassification,
)
from .verification import (
    submit_document,
    adjudicate_document,
    get_verification_status,
)
from .ride_management import (
    create_order,
    list_available_orders,
    list_orders_for_driver,
    get_order,
    accept_offer,
    start_ride,
    complete_ride,
    cancel_order,
    make_offer,
    list_offers,
    make_counter_offer,
    respond_to_counter_offer,
    respond_as_passenger,
    list_negotiations,
)
from .ratings import (
    rate_ride,
    get_user_rating,
)
from .operation import ServiceResult

__all__ = [
    # Identity
    "register_passenger",
    "register_driver",
    "set_driver_status",
    "classify_role",
    "resolve_role",
    "RoleClassification",
    # Verification
    "submit_document",
    "adjudicate_document",
    "get_verification_status",
    # Ride management
    "create_order",
    "list_available_orders",
    "list_orders_for_driver",
    "get_order",
    "accept_offer",
    "start_ride",
    "complete_ride",
    "cancel_order",
    "make_offer",
    "list_offers",
    "make_counter_offer",
    "respond_to_counter_offer",
    "respond_as_passenger",
    "list_negotiations",
    # Ratings
    "rate_ride",
    "get_user_rating",
    # Results
    "ServiceResult",
]
