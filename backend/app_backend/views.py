import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import connection
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

logger = logging.getLogger(__name__)


def _check_database():
    with connection.cursor() as cursor:
        cursor.execute("SELECT 1")


async def _round_trip(channel_layer):
    channel = await channel_layer.new_channel()
    await channel_layer.send(channel, {"type": "health.ping"})
    return await channel_layer.receive(channel)


def _check_channel_layer():
    """Round-trip one message through the layer events are published on."""
    channel_layer = get_channel_layer()
    if channel_layer is None:
        raise RuntimeError("no channel layer configured")
    message = async_to_sync(_round_trip)(channel_layer)
    if message.get("type") != "health.ping":
        raise RuntimeError("unexpected message from channel layer")


CHECKS = {
    "database": _check_database,
    "channels": _check_channel_layer,
}


@api_view(["GET"])
@permission_classes([AllowAny])
def health_check(request):
    """Reports whether the database and the event channel layer are reachable."""
    services = {}
    for name, check in CHECKS.items():
        try:
            check()
        except Exception as exc:
            logger.warning("Health check %s failed: %s", name, exc)
            services[name] = f"unhealthy: {exc}"
        else:
            services[name] = "healthy"

    healthy = all(state == "healthy" for state in services.values())
    return Response(
        {
            "status": "healthy" if healthy else "unhealthy",
            "timestamp": timezone.now().isoformat(),
            "services": services,
        },
        status=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
    )
