"""Entity lookups that translate DoesNotExist into marketplace NotFound errors."""

from drivers.models import Driver
from passengers.models import Passenger
from rides.models import Order

from .exceptions import DriverNotFoundError, OrderNotFoundError, PassengerNotFoundError


def get_passenger(handle: str) -> Passenger:
    try:
        return Passenger.objects.get(telegram_id=handle)
    except Passenger.DoesNotExist:
        raise PassengerNotFoundError()


def get_driver(handle: str) -> Driver:
    try:
        return Driver.objects.get(telegram_id=handle)
    except Driver.DoesNotExist:
        raise DriverNotFoundError()


def get_order(order_id: int, for_update: bool = False) -> Order:
    qs = Order.objects.all()
    if for_update:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=order_id)
    except Order.DoesNotExist:
        raise OrderNotFoundError()
