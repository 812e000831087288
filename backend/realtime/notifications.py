"""
Notification helpers for publishing marketplace events to channel groups.

Drivers listen on ``driver_<driver_id>`` and passengers on
``passenger_<passenger_id>``. The chat transport subscribes to these groups
and turns events into messages; this module only publishes.

Publishing never raises: a lost event must not fail the operation that
produced it.
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Dict, Iterable

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction

logger = logging.getLogger(__name__)


def order_payload(order) -> Dict[str, Any]:
    """JSON-safe summary of an order for event payloads."""
    return {
        "order_id": order.id,
        "status": order.status,
        "from_address": order.from_address,
        "to_address": order.to_address,
        "suggested_price": str(order.suggested_price),
        "final_price": str(order.final_price) if order.final_price is not None else None,
    }


def _group_send(group: str, payload: Dict[str, Any]) -> bool:
    try:
        channel_layer = get_channel_layer()
        if channel_layer is None:
            logger.warning("No channel layer available, dropping %s for %s", payload.get("type"), group)
            return False
        logger.debug("Event -> %s: %s", group, payload)
        async_to_sync(channel_layer.group_send)(group, payload)
        return True
    except Exception:
        logger.exception("Failed to publish %s to %s", payload.get("type"), group)
        return False


def notify_driver_event(
    event_type: str,
    order,
    driver_id: int,
    message: str = "",
    extra: Dict[str, Any] = None,
) -> bool:
    """
    Send an order-related event to one driver through: driver_<driver_id>

    Args:
        event_type: new_order, offer_accepted, counter_offer, order_cancelled, ...
        order: Order model instance
        driver_id: Target driver id
        message: Optional human-readable message
        extra: Additional payload data

    Returns:
        True if sent successfully, False otherwise
    """
    payload = {
        "type": event_type,
        "driver_id": driver_id,
        "order": order_payload(order),
        **(extra or {}),
    }
    if message:
        payload["message"] = message
    return _group_send(f"driver_{driver_id}", payload)


def notify_passenger_event(
    event_type: str,
    order,
    message: str = "",
    extra: Dict[str, Any] = None,
) -> bool:
    """Send an order-related event to the order's passenger through: passenger_<passenger_id>"""
    passenger_id = order.passenger_id
    if not passenger_id:
        return False

    payload = {
        "type": event_type,
        "passenger_id": passenger_id,
        "order": order_payload(order),
        **(extra or {}),
    }
    if message:
        payload["message"] = message
    return _group_send(f"passenger_{passenger_id}", payload)


def notify_drivers_about_order(order, driver_ids: Iterable[int]) -> int:
    """Fan a new order out to every eligible driver. Returns how many were sent."""
    sent = 0
    for driver_id in driver_ids:
        if notify_driver_event("new_order", order, driver_id, "New order available"):
            sent += 1
    logger.info("Order %s announced to %d driver(s)", order.id, sent)
    return sent


def on_commit(func, *args, **kwargs):
    """Publish only once the surrounding transaction has committed."""
    transaction.on_commit(functools.partial(func, *args, **kwargs))
