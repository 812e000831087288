"""
Post-ride ratings and aggregate profile ratings.

A profile's rating is the mean of every rating it ever received in that role,
rounded half-up to two decimals, and recomputed from the full history on each
new rating rather than kept as a running average.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Tuple

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Count, Sum

from drivers.models import Driver
from passengers.models import Passenger
from rides.models import Order, Rating

from ..conf import marketplace_setting
from ..exceptions import (
    AlreadyRatedError,
    NotOrderParticipantError,
    RideNotRateableError,
    ValidationFailedError,
)
from ..lookups import get_driver, get_order, get_passenger
from ..operation import ServiceResult, service_operation

logger = logging.getLogger(__name__)

DEFAULT_RATING = Decimal("5.00")
CENTS = Decimal("0.01")

PROFILE_MODELS = {
    'passenger': Passenger,
    'driver': Driver,
}


def _check_role(role: str):
    if role not in PROFILE_MODELS:
        raise ValidationFailedError(f"Unknown role: {role}")


def _check_score(score) -> int:
    if isinstance(score, bool):
        raise ValidationFailedError("Rating must be a whole number from 1 to 5")
    try:
        value = int(score)
    except (TypeError, ValueError):
        raise ValidationFailedError("Rating must be a whole number from 1 to 5")
    if value != score and str(value) != str(score):
        raise ValidationFailedError("Rating must be a whole number from 1 to 5")
    if not 1 <= value <= 5:
        raise ValidationFailedError("Rating must be between 1 and 5")
    return value


def average_rating(total, count) -> Decimal:
    """Arithmetic mean rounded half-up to two decimals; no ratings means 5.00."""
    if not count:
        return DEFAULT_RATING
    return (Decimal(total) / Decimal(count)).quantize(CENTS, rounding=ROUND_HALF_UP)


def aggregate_rating(role: str, user_id: int) -> Tuple[Decimal, int]:
    totals = Rating.objects.filter(to_user_type=role, to_user_id=user_id).aggregate(
        total=Sum('rating'),
        count=Count('id'),
    )
    count = totals['count'] or 0
    return average_rating(totals['total'] or 0, count), count


def recompute_user_rating(role: str, user_id: int) -> Tuple[Decimal, int]:
    """
    Rewrite a profile's rating and total_rides from every rating it received.

    Runs inside the caller's transaction; a failure is logged and propagates so
    the rating insert that triggered it rolls back too. The profile row is
    locked before aggregating so concurrent ratings of one profile are
    recomputed in turn.
    """
    _check_role(role)
    profiles = PROFILE_MODELS[role].objects
    try:
        list(profiles.select_for_update().filter(pk=user_id).values_list('pk', flat=True))
        average, count = aggregate_rating(role, user_id)
        profiles.filter(pk=user_id).update(rating=average, total_rides=count)
    except DatabaseError:
        logger.exception("Failed to recompute rating for %s %s", role, user_id)
        raise
    logger.info("Rating of %s %s recomputed: %s over %d rating(s)", role, user_id, average, count)
    return average, count


@service_operation
def rate_ride(from_handle: str, order_id: int, role: str, score, comment: Optional[str] = None) -> ServiceResult:
    """
    Rate the other participant of an order.

    Args:
        from_handle: External id of the author
        order_id: The rated ride
        role: Author's role on the order, 'passenger' or 'driver'
        score: Whole number from 1 to 5
        comment: Optional free-text comment

    Returns:
        ServiceResult with the target's recomputed rating
    """
    _check_role(role)
    value = _check_score(score)
    order = get_order(order_id)

    if role == 'passenger':
        author = get_passenger(from_handle)
        if order.passenger_id != author.id:
            raise NotOrderParticipantError("You can only rate rides you ordered.")
        target_type, target_id = 'driver', order.accepted_driver_id
    else:
        author = get_driver(from_handle)
        if order.accepted_driver_id is None or order.accepted_driver_id != author.id:
            raise NotOrderParticipantError("You can only rate rides you drove.")
        target_type, target_id = 'passenger', order.passenger_id

    if order.accepted_driver_id is None:
        raise RideNotRateableError("Nobody has been assigned to this ride yet.")
    if marketplace_setting("RATING_REQUIRES_COMPLETION") and order.status != Order.STATUS_COMPLETED:
        raise RideNotRateableError("Rides can be rated once they are completed.")

    if Rating.objects.filter(order=order, from_user_type=role, from_user_id=author.id).exists():
        raise AlreadyRatedError()

    try:
        with transaction.atomic():
            rating = Rating.objects.create(
                order=order,
                from_user_type=role,
                from_user_id=author.id,
                to_user_type=target_type,
                to_user_id=target_id,
                rating=value,
                comment=comment or None,
            )
    except IntegrityError:
        raise AlreadyRatedError()

    average, count = recompute_user_rating(target_type, target_id)

    logger.info(
        "%s %s rated %s %s with %d on order %s",
        role, author.id, target_type, target_id, value, order.id
    )
    return ServiceResult(
        success=True,
        message=f"Thank you! You rated the ride {value}/5.",
        data={
            "rating_id": rating.id,
            "target_type": target_type,
            "target_id": target_id,
            "new_rating": str(average),
            "total_ratings": count,
        },
    )


@service_operation
def get_user_rating(user_id: int, role: str) -> ServiceResult:
    """Aggregate rating, count and the most recent non-empty comments."""
    _check_role(role)
    average, count = aggregate_rating(role, user_id)

    if not count:
        return ServiceResult(
            success=True,
            message="No ratings yet. Rating: 5.00",
            data={"rating": str(DEFAULT_RATING), "total_ratings": 0, "recent_comments": []},
        )

    limit = marketplace_setting("RECENT_COMMENTS_LIMIT")
    comments = list(
        Rating.objects.filter(to_user_type=role, to_user_id=user_id)
        .exclude(comment__isnull=True)
        .exclude(comment="")
        .order_by('-created_at', '-id')
        .values_list('comment', flat=True)[:limit]
    )
    return ServiceResult(
        success=True,
        message=f"Rating: {average} ({count} rating(s))",
        data={"rating": str(average), "total_ratings": count, "recent_comments": comments},
    )
