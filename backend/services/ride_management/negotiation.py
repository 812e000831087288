"""
Driver offers and price negotiation.

Each driver gets at most one offer per order. Haggling after that happens in
an append-only thread of PriceNegotiation rows: a counter-proposal is always
a new row addressed back to the previous sender, and a row is never edited
once it has been accepted or rejected.
"""

import logging
from typing import Any, Dict, Optional

from django.db import IntegrityError, transaction
from django.utils import timezone

from drivers.models import Driver
from realtime.notifications import notify_driver_event, notify_passenger_event, on_commit
from rides.models import DriverOffer, Order, PriceNegotiation

from ..conf import marketplace_setting
from ..exceptions import (
    DriverNotFoundError,
    DriverNotVerifiedError,
    DuplicateOfferError,
    NegotiationLimitReachedError,
    NegotiationNotFoundError,
    NegotiationResolvedError,
    NotOrderParticipantError,
    OrderNotAvailableError,
)
from ..lookups import get_driver, get_order, get_passenger
from ..operation import ServiceResult, service_operation
from .order_lifecycle import DEFAULT_RATING, UNKNOWN_NAME
from .pricing import to_price

logger = logging.getLogger(__name__)

PASSENGER = 'passenger'
DRIVER = 'driver'


def _offer_row(offer: DriverOffer, driver: Optional[Driver]) -> Dict[str, Any]:
    return {
        "offer_id": offer.id,
        "order_id": offer.order_id,
        "driver_id": offer.driver_id,
        "driver_name": driver.first_name if driver else UNKNOWN_NAME,
        "driver_rating": str(driver.rating) if driver else DEFAULT_RATING,
        "car": driver.car_description if driver else "",
        "offered_price": str(offer.offered_price),
        "status": offer.status,
        "message": offer.message,
        "created_at": offer.created_at.isoformat() if offer.created_at else None,
    }


def _negotiation_row(negotiation: PriceNegotiation) -> Dict[str, Any]:
    return {
        "negotiation_id": negotiation.id,
        "order_id": negotiation.order_id,
        "from_user_type": negotiation.from_user_type,
        "from_user_id": negotiation.from_user_id,
        "to_user_type": negotiation.to_user_type,
        "to_user_id": negotiation.to_user_id,
        "proposed_price": str(negotiation.proposed_price),
        "status": negotiation.status,
        "created_at": negotiation.created_at.isoformat() if negotiation.created_at else None,
    }


def _check_round_limit(order: Order):
    limit = marketplace_setting("MAX_NEGOTIATION_ROUNDS")
    if limit is None:
        return
    if PriceNegotiation.objects.filter(order=order).count() >= limit:
        raise NegotiationLimitReachedError()


def _notify_counterpart(event_type, negotiation, order, message, extra=None):
    payload = {"negotiation_id": negotiation.id, "proposed_price": str(negotiation.proposed_price)}
    payload.update(extra or {})
    if negotiation.to_user_type == DRIVER:
        on_commit(notify_driver_event, event_type, order, negotiation.to_user_id, message, payload)
    else:
        on_commit(notify_passenger_event, event_type, order, message, payload)


# ===================== Offers =====================

@service_operation
def make_offer(driver_handle: str, order_id: int, price, note: Optional[str] = None) -> ServiceResult:
    """
    Place a driver's offer on an order.

    Args:
        driver_handle: External id of a registered driver
        order_id: Target order
        price: Offered price
        note: Optional message for the passenger

    Returns:
        ServiceResult with offer_id
    """
    driver = get_driver(driver_handle)
    order = get_order(order_id)

    if not driver.is_verified:
        raise DriverNotVerifiedError()
    if DriverOffer.objects.filter(order=order, driver=driver).exists():
        raise DuplicateOfferError()
    if not order.is_open:
        raise OrderNotAvailableError()

    offered_price = to_price(price)
    try:
        with transaction.atomic():
            offer = DriverOffer.objects.create(
                order=order,
                driver=driver,
                offered_price=offered_price,
                message=note or None,
            )
    except IntegrityError:
        # A concurrent request inserted the same (order, driver) pair
        raise DuplicateOfferError()

    on_commit(
        notify_passenger_event,
        'new_offer',
        order,
        f"{driver.first_name} offers to drive you for {offered_price}.",
        {"offer": _offer_row(offer, driver)},
    )

    logger.info("Driver %s offered %s on order %s (offer %s)", driver.id, offered_price, order.id, offer.id)
    return ServiceResult(
        success=True,
        message=f"Your offer of {offered_price} has been sent to the passenger.",
        data={"offer_id": offer.id, "order_id": order.id, "offered_price": str(offered_price)},
    )


@service_operation
def list_offers(order_id: int) -> ServiceResult:
    """All offers on an order with driver name, rating and car."""
    order = get_order(order_id)
    offers = list(DriverOffer.objects.filter(order=order).order_by('created_at', 'id'))
    drivers = Driver.objects.in_bulk({offer.driver_id for offer in offers})
    rows = [_offer_row(offer, drivers.get(offer.driver_id)) for offer in offers]
    return ServiceResult(
        success=True,
        message=f"{len(rows)} offer(s) on order #{order.id}." if rows else "No offers yet.",
        data={"offers": rows},
    )


# ===================== Negotiation =====================

@service_operation
def make_counter_offer(order_id: int, passenger_handle: str, driver_id: int, price) -> ServiceResult:
    """
    Passenger proposes a different price to one driver.

    Any order owned by the passenger accepts a new thread, whatever its
    status. A pending offer from that driver is marked counter_offered.
    """
    passenger = get_passenger(passenger_handle)
    order = get_order(order_id)
    if order.passenger_id != passenger.id:
        raise NotOrderParticipantError()
    if not Driver.objects.filter(pk=driver_id).exists():
        raise DriverNotFoundError()

    proposed_price = to_price(price)
    _check_round_limit(order)

    negotiation = PriceNegotiation.objects.create(
        order=order,
        from_user_type=PASSENGER,
        from_user_id=passenger.id,
        to_user_type=DRIVER,
        to_user_id=driver_id,
        proposed_price=proposed_price,
    )
    DriverOffer.objects.filter(order=order, driver_id=driver_id, status='pending').update(
        status='counter_offered',
        updated_at=timezone.now(),
    )

    _notify_counterpart(
        'counter_offer',
        negotiation,
        order,
        f"The passenger proposes {proposed_price} for order #{order.id}.",
    )
    logger.info(
        "Passenger %s countered driver %s on order %s with %s (negotiation %s)",
        passenger.id, driver_id, order.id, proposed_price, negotiation.id
    )
    return ServiceResult(
        success=True,
        message=f"Counter-offer of {proposed_price} sent to the driver.",
        data={"negotiation_id": negotiation.id, "order_id": order.id},
    )


def _lock_negotiation(negotiation_id: int) -> PriceNegotiation:
    try:
        return (
            PriceNegotiation.objects.select_for_update()
            .select_related('order')
            .get(pk=negotiation_id)
        )
    except PriceNegotiation.DoesNotExist:
        raise NegotiationNotFoundError()


def _respond(negotiation, responder_type, responder_id, accept, counter_price):
    if negotiation.to_user_type != responder_type or negotiation.to_user_id != responder_id:
        raise NotOrderParticipantError("This proposal was not addressed to you.")
    if negotiation.status != 'pending':
        raise NegotiationResolvedError()

    order = negotiation.order

    if accept:
        negotiation.status = 'accepted'
        negotiation.responded_at = timezone.now()
        negotiation.save(update_fields=['status', 'responded_at'])
        _notify_counterpart_of_answer(negotiation, order, "accepted")
        logger.info("Negotiation %s accepted by %s %s", negotiation.id, responder_type, responder_id)
        return ServiceResult(
            success=True,
            message=f"You accepted {negotiation.proposed_price}.",
            data={"negotiation_id": negotiation.id, "status": negotiation.status},
        )

    if counter_price is not None:
        proposed_price = to_price(counter_price)
        _check_round_limit(order)
        reply = PriceNegotiation.objects.create(
            order=order,
            from_user_type=responder_type,
            from_user_id=responder_id,
            to_user_type=negotiation.from_user_type,
            to_user_id=negotiation.from_user_id,
            proposed_price=proposed_price,
        )
        _notify_counterpart(
            'counter_offer',
            reply,
            order,
            f"New counter-offer of {proposed_price} for order #{order.id}.",
            {"in_reply_to": negotiation.id},
        )
        logger.info(
            "Negotiation %s countered by %s %s with %s (negotiation %s)",
            negotiation.id, responder_type, responder_id, proposed_price, reply.id
        )
        return ServiceResult(
            success=True,
            message=f"Your counter-offer of {proposed_price} has been sent.",
            data={"negotiation_id": reply.id, "in_reply_to": negotiation.id, "status": reply.status},
        )

    negotiation.status = 'rejected'
    negotiation.responded_at = timezone.now()
    negotiation.save(update_fields=['status', 'responded_at'])
    _notify_counterpart_of_answer(negotiation, order, "rejected")
    logger.info("Negotiation %s rejected by %s %s", negotiation.id, responder_type, responder_id)
    return ServiceResult(
        success=True,
        message="Counter-offer declined.",
        data={"negotiation_id": negotiation.id, "status": negotiation.status},
    )


def _notify_counterpart_of_answer(negotiation, order, answer):
    message = f"Your proposal of {negotiation.proposed_price} was {answer}."
    payload = {"negotiation_id": negotiation.id, "status": answer}
    if negotiation.from_user_type == DRIVER:
        on_commit(notify_driver_event, 'negotiation_update', order, negotiation.from_user_id, message, payload)
    else:
        on_commit(notify_passenger_event, 'negotiation_update', order, message, payload)


@service_operation
def respond_to_counter_offer(
    driver_handle: str,
    negotiation_id: int,
    accept: bool,
    counter_price=None,
) -> ServiceResult:
    """
    Driver's answer to a proposal addressed to them.

    accept marks the proposal accepted (the order itself only moves through
    accept_offer). A counter_price appends a reverse proposal and leaves the
    original row pending. Anything else rejects it.
    """
    driver = get_driver(driver_handle)
    negotiation = _lock_negotiation(negotiation_id)
    return _respond(negotiation, DRIVER, driver.id, accept, counter_price)


@service_operation
def respond_as_passenger(
    passenger_handle: str,
    negotiation_id: int,
    accept: bool,
    counter_price=None,
) -> ServiceResult:
    """Passenger's answer to a driver's counter-proposal. Same rules as the driver side."""
    passenger = get_passenger(passenger_handle)
    negotiation = _lock_negotiation(negotiation_id)
    return _respond(negotiation, PASSENGER, passenger.id, accept, counter_price)


@service_operation
def list_negotiations(order_id: int) -> ServiceResult:
    order = get_order(order_id)
    rows = [_negotiation_row(n) for n in PriceNegotiation.objects.filter(order=order).order_by('created_at', 'id')]
    return ServiceResult(
        success=True,
        message=f"{len(rows)} proposal(s) on order #{order.id}.",
        data={"negotiations": rows},
    )
