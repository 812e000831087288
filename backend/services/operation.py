"""
Result object and transaction wrapper shared by every marketplace operation.

Operations raise MarketplaceError subclasses internally; callers (the agent
layer, HTTP views) always receive a ServiceResult instead.
"""

import functools
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from django.db import DatabaseError, transaction

from .exceptions import MarketplaceError

logger = logging.getLogger(__name__)


@dataclass
class ServiceResult:
    """Result object for marketplace operations."""
    success: bool
    message: str = ""
    error_code: Optional[str] = None
    reason: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        payload = {"success": self.success, "message": self.message}
        if not self.success:
            payload["error_code"] = self.error_code
            payload["reason"] = self.reason
        payload.update(self.data)
        return payload


def service_operation(func):
    """
    Run ``func`` in one transaction and turn failures into a ServiceResult.

    The transaction is rolled back on any failure, so partial writes
    (including a failed recomputation) never persist.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            with transaction.atomic():
                return func(*args, **kwargs)
        except MarketplaceError as exc:
            logger.info("%s refused: %s (%s)", func.__name__, exc, exc.reason)
            return ServiceResult(
                success=False,
                message=str(exc),
                error_code=exc.code,
                reason=exc.reason,
            )
        except DatabaseError:
            logger.exception("%s failed with a database error", func.__name__)
            return ServiceResult(
                success=False,
                message="An internal error occurred. Please try again.",
                error_code="internal_error",
                reason="database_error",
            )

    return wrapper
