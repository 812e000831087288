"""
Identity registry - passenger/driver profiles keyed by chat handle.
"""

from .registration import register_passenger, register_driver, set_driver_status
from .role_classifier import RoleClassification, classify_role, classify_by_hints, resolve_role

__all__ = [
    "register_passenger",
    "register_driver",
    "set_driver_status",
    "RoleClassification",
    "classify_role",
    "classify_by_hints",
    "resolve_role",
]
