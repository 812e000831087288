"""
Named marketplace operations exposed to the agent layer.

The registry is an explicit object: the URL configuration builds it once with
build_default_registry() and hands it to the dispatch view. Nothing registers
itself at import time.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Type

from rest_framework import serializers

from . import identity, ratings, ride_management, verification
from .exceptions import ValidationFailedError
from .operation import ServiceResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Operation:
    name: str
    handler: Callable[..., ServiceResult]
    serializer_class: Type[serializers.Serializer]
    description: str = ""


class OperationRegistry:
    """Maps operation names to handlers and their input serializers."""

    def __init__(self):
        self._operations: Dict[str, Operation] = {}

    def register(self, name, handler, serializer_class, description=""):
        if name in self._operations:
            raise ValueError(f"Operation {name!r} is already registered")
        self._operations[name] = Operation(name, handler, serializer_class, description)
        return self._operations[name]

    def get(self, name) -> Optional[Operation]:
        return self._operations.get(name)

    def names(self) -> List[str]:
        return sorted(self._operations)

    def catalogue(self) -> List[Dict[str, str]]:
        return [
            {"name": op.name, "description": op.description}
            for op in (self._operations[name] for name in self.names())
        ]

    def __contains__(self, name):
        return name in self._operations

    def __len__(self):
        return len(self._operations)

    def invoke(self, name, payload) -> ServiceResult:
        """
        Validate ``payload`` with the operation's serializer and run it.

        Unknown names and invalid payloads come back as failed results, the
        same way domain errors do.
        """
        operation = self.get(name)
        if operation is None:
            return ServiceResult(
                success=False,
                message=f"Unknown operation: {name}",
                error_code="not_found",
                reason="unknown_operation",
            )

        serializer = operation.serializer_class(data=payload)
        if not serializer.is_valid():
            error = ValidationFailedError("Invalid input")
            return ServiceResult(
                success=False,
                message=str(error),
                error_code=error.code,
                reason=error.reason,
                data={"errors": serializer.errors},
            )

        logger.debug("Invoking %s", name)
        return operation.handler(**serializer.validated_data)


def build_default_registry() -> OperationRegistry:
    """Registry with every marketplace operation the agent layer may call."""
    from drivers import serializers as driver_inputs
    from passengers import serializers as passenger_inputs
    from rides import serializers as ride_inputs

    registry = OperationRegistry()

    # Identity
    registry.register(
        "register_passenger", identity.register_passenger, passenger_inputs.RegisterPassengerSerializer,
        "Register a passenger by chat handle (idempotent).",
    )
    registry.register(
        "register_driver", identity.register_driver, driver_inputs.RegisterDriverSerializer,
        "Register a driver with optional vehicle details (idempotent).",
    )
    registry.register(
        "set_driver_status", identity.set_driver_status, driver_inputs.DriverStatusSerializer,
        "Switch a driver online or offline.",
    )
    registry.register(
        "resolve_role", identity.resolve_role, passenger_inputs.ResolveRoleSerializer,
        "Decide whether a message comes from a passenger, a driver, or is ambiguous.",
    )

    # Verification
    registry.register(
        "submit_document", verification.submit_document, driver_inputs.SubmitDocumentSerializer,
        "Submit or resubmit a driver document for review.",
    )
    registry.register(
        "adjudicate_document", verification.adjudicate_document, driver_inputs.AdjudicateDocumentSerializer,
        "Approve or reject a driver document.",
    )
    registry.register(
        "get_verification_status", verification.get_verification_status, driver_inputs.DriverHandleSerializer,
        "Per-document status and the driver's verified flag.",
    )

    # Orders
    registry.register(
        "create_order", ride_management.create_order, ride_inputs.CreateOrderSerializer,
        "Create a ride request at a suggested price.",
    )
    registry.register(
        "list_available_orders", ride_management.list_available_orders, ride_inputs.EmptySerializer,
        "All pending orders, newest first.",
    )
    registry.register(
        "list_orders_for_driver", ride_management.list_orders_for_driver, driver_inputs.DriverHandleSerializer,
        "Pending orders for a verified, online driver.",
    )
    registry.register(
        "get_order", ride_management.get_order, ride_inputs.OrderIdSerializer,
        "Snapshot of one order.",
    )
    registry.register(
        "accept_offer", ride_management.accept_offer, ride_inputs.AcceptOfferSerializer,
        "Accept a driver's offer; the first acceptance wins the order.",
    )
    registry.register(
        "start_ride", ride_management.start_ride, ride_inputs.DriverOrderSerializer,
        "Accepted driver starts the ride.",
    )
    registry.register(
        "complete_ride", ride_management.complete_ride, ride_inputs.DriverOrderSerializer,
        "Accepted driver completes the ride.",
    )
    registry.register(
        "cancel_order", ride_management.cancel_order, ride_inputs.CancelOrderSerializer,
        "Cancel an unfinished order as its passenger or accepted driver.",
    )

    # Offers and negotiation
    registry.register(
        "make_offer", ride_management.make_offer, ride_inputs.MakeOfferSerializer,
        "Driver offers a price on an order (one offer per driver and order).",
    )
    registry.register(
        "list_offers", ride_management.list_offers, ride_inputs.OrderIdSerializer,
        "Offers on an order with driver details.",
    )
    registry.register(
        "make_counter_offer", ride_management.make_counter_offer, ride_inputs.CounterOfferSerializer,
        "Passenger proposes a different price to a driver.",
    )
    registry.register(
        "respond_to_counter_offer", ride_management.respond_to_counter_offer,
        ride_inputs.RespondToCounterOfferSerializer,
        "Driver accepts, rejects or counters a proposal.",
    )
    registry.register(
        "respond_as_passenger", ride_management.respond_as_passenger, ride_inputs.PassengerResponseSerializer,
        "Passenger accepts, rejects or counters a driver's proposal.",
    )
    registry.register(
        "list_negotiations", ride_management.list_negotiations, ride_inputs.OrderIdSerializer,
        "Price negotiation thread of an order.",
    )

    # Ratings
    registry.register(
        "rate_ride", ratings.rate_ride, ride_inputs.RateRideSerializer,
        "Rate the other participant of a ride (1-5).",
    )
    registry.register(
        "get_user_rating", ratings.get_user_rating, ride_inputs.UserRatingSerializer,
        "Aggregate rating and recent comments of a passenger or driver.",
    )

    logger.info("Operation registry built with %d operation(s)", len(registry))
    return registry
