"""
Verification ledger - driver document submission and adjudication.
"""

from .ledger import (
    submit_document,
    adjudicate_document,
    get_verification_status,
    derive_verified,
    refresh_driver_verification,
    required_document_types,
)

__all__ = [
    "submit_document",
    "adjudicate_document",
    "get_verification_status",
    "derive_verified",
    "refresh_driver_verification",
    "required_document_types",
]
