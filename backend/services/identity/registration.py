"""
Passenger and driver registration.

Registration is an idempotent upsert keyed by the chat handle: registering an
existing handle succeeds and returns the stored profile untouched.
"""

import logging

from django.utils import timezone

from drivers.models import Driver
from passengers.models import Passenger

from ..exceptions import DriverNotFoundError
from ..operation import ServiceResult, service_operation

logger = logging.getLogger(__name__)


@service_operation
def register_passenger(handle: str, name: str, phone: str) -> ServiceResult:
    """
    Register a passenger, or welcome back an existing one.

    Args:
        handle: External (Telegram) user id
        name: Display name
        phone: Contact phone number

    Returns:
        ServiceResult with passenger_id and created flag
    """
    passenger, created = Passenger.objects.get_or_create(
        telegram_id=handle,
        defaults={"first_name": name, "phone_number": phone},
    )

    if not created:
        logger.info("Passenger %s already registered (id=%s)", handle, passenger.id)
        return ServiceResult(
            success=True,
            message=f"Welcome back, {passenger.first_name}! You are already registered.",
            data={"passenger_id": passenger.id, "created": False},
        )

    logger.info("Registered passenger %s (id=%s)", handle, passenger.id)
    return ServiceResult(
        success=True,
        message=f"Welcome, {name}! You can start ordering rides.",
        data={"passenger_id": passenger.id, "created": True},
    )


@service_operation
def register_driver(
    handle: str,
    name: str,
    phone: str,
    car_model: str = "",
    car_color: str = "",
    car_number: str = "",
) -> ServiceResult:
    """
    Register a driver, or welcome back an existing one.

    New drivers start offline and unverified; they must pass document
    verification before they can make offers.
    """
    driver, created = Driver.objects.get_or_create(
        telegram_id=handle,
        defaults={
            "first_name": name,
            "phone_number": phone,
            "car_model": car_model,
            "car_color": car_color,
            "car_number": car_number,
            "is_verified": False,
        },
    )

    if not created:
        logger.info("Driver %s already registered (id=%s)", handle, driver.id)
        return ServiceResult(
            success=True,
            message=f"Welcome back, {driver.first_name}! You are already registered as a driver.",
            data={"driver_id": driver.id, "created": False, "is_verified": driver.is_verified},
        )

    logger.info("Registered driver %s (id=%s)", handle, driver.id)
    return ServiceResult(
        success=True,
        message=(
            f"Welcome, {name}! Before you can take orders, please upload your "
            "driver license and vehicle registration for verification."
        ),
        data={"driver_id": driver.id, "created": True, "is_verified": False},
    )


@service_operation
def set_driver_status(handle: str, is_online: bool) -> ServiceResult:
    """Switch a driver online (receives new orders) or offline."""
    updated = Driver.objects.filter(telegram_id=handle).update(
        is_online=is_online,
        updated_at=timezone.now(),
    )
    if not updated:
        raise DriverNotFoundError()

    status_text = "online" if is_online else "offline"
    logger.info("Driver %s is now %s", handle, status_text)
    return ServiceResult(
        success=True,
        message=(
            f"Status changed to {status_text}. "
            + ("You will now receive new orders." if is_online else "You will not receive new orders.")
        ),
        data={"is_online": is_online},
    )
