"""Marketplace policy settings with built-in defaults."""

from django.conf import settings

DEFAULTS = {
    "REQUIRED_DOCUMENT_TYPES": ["license", "vehicle_registration"],
    "CASCADE_REJECT_ON_ACCEPT": False,
    "RATING_REQUIRES_COMPLETION": False,
    # None keeps negotiation threads unbounded
    "MAX_NEGOTIATION_ROUNDS": None,
    "RECENT_COMMENTS_LIMIT": 5,
    "AGENT_API_TOKEN": "",
    "ROLE_HINTS": {
        "passenger": [
            "order", "ride", "taxi", "trip", "book",
            "заказ", "такси", "ехать", "поездк",
        ],
        "driver": [
            "driver", "drive", "work", "earn", "online", "car",
            "водит", "работ", "зарабат", "онлайн", "машин",
        ],
    },
}


def marketplace_setting(name):
    """
    Read one MARKETPLACE setting, falling back to DEFAULTS.

    Looked up on every call so override_settings works in tests.
    """
    overrides = getattr(settings, "MARKETPLACE", None) or {}
    if name in overrides:
        return overrides[name]
    return DEFAULTS[name]
