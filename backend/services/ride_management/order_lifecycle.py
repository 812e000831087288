"""
Core order lifecycle operations.

This module owns orders from creation to completion:
    - Creating orders and announcing them to eligible drivers
    - Listing open orders
    - Accepting an offer (the single winner of an order)
    - Starting, completing and cancelling rides

Acceptance and every later transition go through a conditional UPDATE on the
order status, so two concurrent callers can never both win.
"""

import logging
from typing import Any, Dict, Optional

from django.utils import timezone

from drivers.models import Driver
from passengers.models import Passenger
from realtime.notifications import (
    notify_driver_event,
    notify_drivers_about_order,
    notify_passenger_event,
    on_commit,
)
from rides.models import DriverOffer, Order, PriceNegotiation

from ..conf import marketplace_setting
from ..exceptions import (
    DriverNotVerifiedError,
    DriverOfflineError,
    InvalidTransitionError,
    NotOrderParticipantError,
    OfferNotFoundError,
    OfferNotPendingError,
    OrderNotAvailableError,
    OrderNotCancellableError,
    ValidationFailedError,
)
from ..lookups import get_driver, get_order as lookup_order, get_passenger
from ..operation import ServiceResult, service_operation
from .pricing import to_price

logger = logging.getLogger(__name__)

UNKNOWN_NAME = "Unknown"
DEFAULT_RATING = "5.00"


def serialize_order(order: Order, passenger: Optional[Passenger] = None) -> Dict[str, Any]:
    """
    Order row joined with its passenger.

    A missing passenger falls back to "Unknown" / "5.00" so one bad row never
    breaks a listing.
    """
    return {
        "order_id": order.id,
        "status": order.status,
        "from_address": order.from_address,
        "to_address": order.to_address,
        "suggested_price": str(order.suggested_price),
        "final_price": str(order.final_price) if order.final_price is not None else None,
        "passenger_id": order.passenger_id,
        "passenger_name": passenger.first_name if passenger else UNKNOWN_NAME,
        "passenger_rating": str(passenger.rating) if passenger else DEFAULT_RATING,
        "accepted_driver_id": order.accepted_driver_id,
        "created_at": order.created_at.isoformat() if order.created_at else None,
    }


def _pending_order_rows():
    orders = list(Order.objects.filter(status=Order.STATUS_PENDING).order_by('-created_at', '-id'))
    passengers = Passenger.objects.in_bulk({order.passenger_id for order in orders})
    return [serialize_order(order, passengers.get(order.passenger_id)) for order in orders]


def _driver_contact(driver: Driver) -> Dict[str, Any]:
    return {
        "driver_id": driver.id,
        "name": driver.first_name,
        "phone": driver.phone_number,
        "rating": str(driver.rating),
        "car": driver.car_description,
        "car_number": driver.car_number,
    }


# ===================== Passenger Operations =====================

@service_operation
def create_order(passenger_handle: str, from_address: str, to_address: str, suggested_price) -> ServiceResult:
    """
    Create a pending order and announce it to online, verified drivers.

    Args:
        passenger_handle: External id of a registered passenger
        from_address: Pickup address
        to_address: Destination address
        suggested_price: Price the passenger proposes

    Returns:
        ServiceResult with order_id and the number of eligible drivers
    """
    passenger = get_passenger(passenger_handle)
    price = to_price(suggested_price)
    if not from_address or not to_address:
        raise ValidationFailedError("Both pickup and destination addresses are required")

    order = Order.objects.create(
        passenger=passenger,
        from_address=from_address,
        to_address=to_address,
        suggested_price=price,
        status=Order.STATUS_PENDING,
    )

    eligible = list(
        Driver.objects.filter(is_online=True, is_verified=True).values_list('id', flat=True)
    )
    on_commit(notify_drivers_about_order, order, eligible)

    logger.info(
        "Passenger %s created order %s (%s -> %s, %s), %d eligible driver(s)",
        passenger.id, order.id, from_address, to_address, price, len(eligible)
    )
    if eligible:
        message = f"Order #{order.id} created. {len(eligible)} driver(s) have been notified."
    else:
        message = f"Order #{order.id} created. No drivers are online right now, we will keep it open."

    return ServiceResult(
        success=True,
        message=message,
        data={"order_id": order.id, "status": order.status, "eligible_drivers": len(eligible)},
    )


@service_operation
def list_available_orders() -> ServiceResult:
    """All pending orders, newest first, with passenger name and rating."""
    rows = _pending_order_rows()
    return ServiceResult(
        success=True,
        message=f"{len(rows)} available order(s)." if rows else "No available orders right now.",
        data={"orders": rows},
    )


@service_operation
def get_order(order_id: int) -> ServiceResult:
    order = lookup_order(order_id)
    passenger = Passenger.objects.filter(pk=order.passenger_id).first()
    snapshot = serialize_order(order, passenger)
    snapshot["offers_count"] = order.offers.count()
    if order.accepted_driver_id:
        snapshot["driver"] = _driver_contact(order.accepted_driver)
    return ServiceResult(success=True, message=f"Order #{order.id}: {order.status}", data={"order": snapshot})


# ===================== Driver Operations =====================

@service_operation
def list_orders_for_driver(driver_handle: str) -> ServiceResult:
    """Pending orders, for a driver who is verified and online."""
    driver = get_driver(driver_handle)
    if not driver.is_verified:
        raise DriverNotVerifiedError("Document verification is required before you can see orders.")
    if not driver.is_online:
        raise DriverOfflineError()

    rows = _pending_order_rows()
    return ServiceResult(
        success=True,
        message=f"{len(rows)} available order(s)." if rows else "No available orders right now.",
        data={"orders": rows},
    )


@service_operation
def accept_offer(offer_id: int, order_id: int) -> ServiceResult:
    """
    Accept a driver's offer and finalize the order.

    The order moves to accepted only if it is still open; a second caller
    racing on the same order gets order_not_available. Sibling offers stay
    pending unless CASCADE_REJECT_ON_ACCEPT is enabled.
    """
    offer = (
        DriverOffer.objects.select_related('driver')
        .filter(pk=offer_id, order_id=order_id)
        .first()
    )
    if offer is None:
        raise OfferNotFoundError()

    now = timezone.now()
    won = Order.objects.filter(pk=order_id, status__in=Order.OPEN_STATUSES).update(
        status=Order.STATUS_ACCEPTED,
        accepted_driver=offer.driver,
        final_price=offer.offered_price,
        accepted_at=now,
        updated_at=now,
    )
    if not won:
        raise OrderNotAvailableError()

    offer_updated = DriverOffer.objects.filter(pk=offer.pk, status__in=DriverOffer.OPEN_STATUSES).update(
        status='accepted',
        responded_at=now,
        updated_at=now,
    )
    if not offer_updated:
        # Rolls the order update back with the rest of the transaction
        raise OfferNotPendingError()

    rejected_offers = 0
    if marketplace_setting("CASCADE_REJECT_ON_ACCEPT"):
        rejected_offers = (
            DriverOffer.objects.filter(order_id=order_id, status__in=DriverOffer.OPEN_STATUSES)
            .exclude(pk=offer.pk)
            .update(status='rejected', responded_at=now, updated_at=now)
        )
        PriceNegotiation.objects.filter(order_id=order_id, status='pending').update(
            status='rejected',
            responded_at=now,
        )

    order = Order.objects.get(pk=order_id)
    driver = offer.driver
    on_commit(
        notify_driver_event,
        'offer_accepted',
        order,
        driver.id,
        f"Your offer of {offer.offered_price} was accepted. Contact the passenger to arrange pickup.",
    )

    logger.info(
        "Order %s accepted: driver %s at %s (offer %s, %d sibling offer(s) rejected)",
        order.id, driver.id, offer.offered_price, offer.pk, rejected_offers
    )
    return ServiceResult(
        success=True,
        message=(
            f"Offer accepted! {driver.first_name} will drive you for {offer.offered_price}. "
            f"Phone: {driver.phone_number}"
        ),
        data={
            "order_id": order.id,
            "offer_id": offer.pk,
            "final_price": str(offer.offered_price),
            "driver": _driver_contact(driver),
            "rejected_offers": rejected_offers,
        },
    )


def _transition_by_driver(driver_handle, order_id, from_status, to_status, stamp_field):
    driver = get_driver(driver_handle)
    order = lookup_order(order_id)
    if order.accepted_driver_id != driver.id:
        raise NotOrderParticipantError("Only the driver assigned to this order can do that.")

    now = timezone.now()
    updated = Order.objects.filter(
        pk=order.pk,
        status=from_status,
        accepted_driver=driver,
    ).update(**{"status": to_status, stamp_field: now, "updated_at": now})
    if not updated:
        raise InvalidTransitionError(f"Order #{order.pk} is {order.status}, expected {from_status}.")

    order.refresh_from_db()
    logger.info("Order %s: %s -> %s by driver %s", order.pk, from_status, to_status, driver.id)
    return order


@service_operation
def start_ride(driver_handle: str, order_id: int) -> ServiceResult:
    order = _transition_by_driver(
        driver_handle, order_id, Order.STATUS_ACCEPTED, Order.STATUS_IN_PROGRESS, 'started_at'
    )
    on_commit(notify_passenger_event, 'ride_started', order, 'Your driver has started the ride.')
    return ServiceResult(
        success=True,
        message="Ride started. Have a safe trip!",
        data={"order_id": order.id, "status": order.status},
    )


@service_operation
def complete_ride(driver_handle: str, order_id: int) -> ServiceResult:
    """Finish a ride in progress. Completed rides can be rated by both sides."""
    order = _transition_by_driver(
        driver_handle, order_id, Order.STATUS_IN_PROGRESS, Order.STATUS_COMPLETED, 'completed_at'
    )
    on_commit(
        notify_passenger_event,
        'ride_completed',
        order,
        'Your ride has been completed. Please rate your driver!',
    )
    return ServiceResult(
        success=True,
        message="Ride completed. Don't forget to rate the passenger.",
        data={"order_id": order.id, "status": order.status},
    )


# ===================== Shared Operations =====================

@service_operation
def cancel_order(handle: str, role: str, order_id: int, reason: str = None) -> ServiceResult:
    """
    Cancel an order from any non-terminal state.

    Args:
        handle: External id of the caller
        role: 'passenger' (must own the order) or 'driver' (must be the accepted driver)
        order_id: Order to cancel
        reason: Optional cancellation reason
    """
    if role == 'passenger':
        passenger = get_passenger(handle)
        order = lookup_order(order_id)
        if order.passenger_id != passenger.id:
            raise NotOrderParticipantError()
    elif role == 'driver':
        driver = get_driver(handle)
        order = lookup_order(order_id)
        if order.accepted_driver_id is None or order.accepted_driver_id != driver.id:
            raise NotOrderParticipantError()
    else:
        raise ValidationFailedError(f"Unknown role: {role}")

    now = timezone.now()
    cancelled = (
        Order.objects.filter(pk=order.pk)
        .exclude(status__in=Order.TERMINAL_STATUSES)
        .update(
            status=Order.STATUS_CANCELLED,
            cancelled_at=now,
            cancellation_reason=reason or f"Cancelled by {role}",
            updated_at=now,
        )
    )
    if not cancelled:
        raise OrderNotCancellableError()

    order.refresh_from_db()

    if role == 'driver':
        on_commit(notify_passenger_event, 'order_cancelled', order, 'The driver cancelled the ride.')
    else:
        # Everyone still waiting on this order: the accepted driver or open offers
        driver_ids = set(
            DriverOffer.objects.filter(order=order, status__in=DriverOffer.OPEN_STATUSES).values_list('driver_id', flat=True)
        )
        if order.accepted_driver_id:
            driver_ids.add(order.accepted_driver_id)
        for driver_id in sorted(driver_ids):
            on_commit(notify_driver_event, 'order_cancelled', order, driver_id, 'The passenger cancelled this order.')

    logger.info("Order %s cancelled by %s %s: %s", order.pk, role, handle, order.cancellation_reason)
    return ServiceResult(
        success=True,
        message=f"Order #{order.pk} cancelled.",
        data={"order_id": order.pk, "status": order.status},
    )
