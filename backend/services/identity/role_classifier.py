"""
Decide which side of the marketplace an incoming chat message belongs to.

The agent layer calls this before choosing the passenger or driver flow.
"""

import enum
import logging

from drivers.models import Driver
from passengers.models import Passenger

from ..conf import marketplace_setting
from ..operation import ServiceResult, service_operation

logger = logging.getLogger(__name__)


class RoleClassification(enum.Enum):
    PASSENGER = "passenger"
    DRIVER = "driver"
    AMBIGUOUS = "ambiguous"


def classify_by_hints(message: str) -> RoleClassification:
    """Classify free text by keyword hints. Both or neither matching is AMBIGUOUS."""
    text = (message or "").lower()
    hints = marketplace_setting("ROLE_HINTS")

    passenger_hit = any(word in text for word in hints.get("passenger", []))
    driver_hit = any(word in text for word in hints.get("driver", []))

    if passenger_hit and not driver_hit:
        return RoleClassification.PASSENGER
    if driver_hit and not passenger_hit:
        return RoleClassification.DRIVER
    return RoleClassification.AMBIGUOUS


def classify_role(handle: str, message: str = "") -> RoleClassification:
    """
    Classify a user by registration first, then by message hints.

    A handle registered as exactly one role is that role. A handle registered
    as both, or as neither, falls back to the message text.
    """
    is_passenger = Passenger.objects.filter(telegram_id=handle).exists()
    is_driver = Driver.objects.filter(telegram_id=handle).exists()

    if is_passenger and not is_driver:
        role = RoleClassification.PASSENGER
    elif is_driver and not is_passenger:
        role = RoleClassification.DRIVER
    else:
        role = classify_by_hints(message)

    logger.debug("Classified %s as %s", handle, role.value)
    return role


@service_operation
def resolve_role(handle: str, message: str = "") -> ServiceResult:
    """classify_role for the agent layer, wrapped in a ServiceResult."""
    role = classify_role(handle, message)
    messages = {
        RoleClassification.PASSENGER: "Continuing as a passenger.",
        RoleClassification.DRIVER: "Continuing as a driver.",
        RoleClassification.AMBIGUOUS: "Are you looking for a ride, or do you want to drive?",
    }
    return ServiceResult(success=True, message=messages[role], data={"role": role.value})
