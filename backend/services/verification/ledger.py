"""
Driver document verification ledger.

A driver is verified iff every required document type has an approved
document. The flag stored on Driver is rewritten on every document status
change (submission resets to pending, adjudication approves/rejects), and
read paths derive the value again instead of trusting the stored copy.
"""

import logging
from typing import Any, Dict, Optional

from django.db import DatabaseError
from django.utils import timezone

from drivers.models import Driver, DriverDocument

from ..conf import marketplace_setting
from ..exceptions import DocumentNotFoundError, ValidationFailedError
from ..lookups import get_driver
from ..operation import ServiceResult, service_operation

logger = logging.getLogger(__name__)

DOCUMENT_LABELS = dict(DriverDocument.TYPE_CHOICES)
STATUS_LABELS = dict(DriverDocument.STATUS_CHOICES)


def required_document_types():
    return list(marketplace_setting("REQUIRED_DOCUMENT_TYPES"))


def derive_verified(driver: Driver) -> bool:
    """Recompute the verified flag from the driver's documents."""
    approved = set(
        DriverDocument.objects.filter(driver=driver, status='approved')
        .values_list('document_type', flat=True)
    )
    return all(doc_type in approved for doc_type in required_document_types())


def refresh_driver_verification(driver: Driver) -> bool:
    """
    Rewrite ``driver.is_verified`` from the current documents.

    Must run inside the transaction that changed a document status; a failure
    propagates so that transaction rolls back as a whole. The driver row is
    locked first so concurrent adjudications of the same driver's documents
    recompute one after the other and the last one sees every approval.
    """
    try:
        locked = Driver.objects.select_for_update().only('pk', 'is_verified').get(pk=driver.pk)
        verified = derive_verified(locked)
        if verified != locked.is_verified:
            Driver.objects.filter(pk=driver.pk).update(
                is_verified=verified,
                updated_at=timezone.now(),
            )
            logger.info(
                "Driver %s verification changed: %s -> %s",
                driver.pk, locked.is_verified, verified
            )
        driver.is_verified = verified
        return verified
    except DatabaseError:
        logger.exception("Failed to recompute verification for driver %s", driver.pk)
        raise


@service_operation
def submit_document(driver_handle: str, document_type: str, document_data: Optional[Dict[str, Any]] = None) -> ServiceResult:
    """
    Submit (or resubmit) a document for review.

    Resubmitting a type the driver already has replaces the payload and puts
    the document back to pending with no rejection reason.
    """
    if document_type not in DOCUMENT_LABELS:
        raise ValidationFailedError(f"Unknown document type: {document_type}")

    driver = get_driver(driver_handle)

    document, created = DriverDocument.objects.update_or_create(
        driver=driver,
        document_type=document_type,
        defaults={
            "document_data": document_data or {},
            "status": "pending",
            "rejection_reason": None,
        },
    )
    is_verified = refresh_driver_verification(driver)

    label = DOCUMENT_LABELS[document_type]
    if created:
        logger.info("Driver %s uploaded %s (document %s)", driver.pk, document_type, document.pk)
        message = f"{label} uploaded and sent for review. You will get the result within 24 hours."
    else:
        logger.info("Driver %s resubmitted %s (document %s)", driver.pk, document_type, document.pk)
        message = f"{label} updated and sent for review."

    return ServiceResult(
        success=True,
        message=message,
        data={
            "document_id": document.pk,
            "created": created,
            "is_verified": is_verified,
        },
    )


@service_operation
def adjudicate_document(document_id: int, approve: bool, reason: Optional[str] = None) -> ServiceResult:
    """Approve or reject a document and recompute the owner's verification."""
    try:
        document = (
            DriverDocument.objects.select_for_update()
            .select_related('driver')
            .get(pk=document_id)
        )
    except DriverDocument.DoesNotExist:
        raise DocumentNotFoundError()

    document.status = 'approved' if approve else 'rejected'
    document.rejection_reason = None if approve else (reason or None)
    document.save(update_fields=['status', 'rejection_reason', 'updated_at'])

    is_verified = refresh_driver_verification(document.driver)

    logger.info(
        "Document %s (%s) of driver %s %s",
        document.pk, document.document_type, document.driver_id, document.status
    )
    return ServiceResult(
        success=True,
        message=f"Document {'approved' if approve else 'rejected'}.",
        data={
            "document_id": document.pk,
            "driver_id": document.driver_id,
            "status": document.status,
            "is_verified": is_verified,
        },
    )


@service_operation
def get_verification_status(driver_handle: str) -> ServiceResult:
    """Snapshot of every submitted document plus the derived verified flag."""
    driver = get_driver(driver_handle)
    documents = list(DriverDocument.objects.filter(driver=driver).order_by('document_type'))

    is_verified = derive_verified(driver)
    if is_verified != driver.is_verified:
        logger.warning(
            "Stored verification flag for driver %s is %s but documents say %s",
            driver.pk, driver.is_verified, is_verified
        )

    submitted = {doc.document_type for doc in documents}
    missing = [doc_type for doc_type in required_document_types() if doc_type not in submitted]

    snapshot = [
        {
            "document_id": doc.pk,
            "type": doc.document_type,
            "label": DOCUMENT_LABELS.get(doc.document_type, "Document"),
            "status": doc.status,
            "rejection_reason": doc.rejection_reason,
        }
        for doc in documents
    ]

    lines = [f"Verification status: {'verified' if is_verified else 'not verified'}"]
    if not snapshot:
        lines.append("No documents uploaded. Please upload your driver license and vehicle registration.")
    for item in snapshot:
        line = f"- {item['label']}: {STATUS_LABELS.get(item['status'], 'Unknown')}"
        if item["rejection_reason"]:
            line += f" ({item['rejection_reason']})"
        lines.append(line)

    return ServiceResult(
        success=True,
        message="\n".join(lines),
        data={
            "is_verified": is_verified,
            "documents": snapshot,
            "missing_required": missing,
        },
    )
