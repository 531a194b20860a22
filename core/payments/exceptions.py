"""
Payment Reconciliation Exceptions

Exception hierarchy for the payment reconciliation subsystem. Every error a
handler raises on purpose derives from ``ReconciliationError`` and carries
the HTTP status it maps to, so API views never branch on exception types
themselves.

Hierarchy:
- ReconciliationError
  - AuthenticityError   (400) bad or missing provider signature
  - ValidationError     (400) malformed input or ineligible transition
  - AuthorizationError  (403) caller lacks the admin role
  - NotFoundError       (404) unknown payment/course/user
  - DownstreamError     (502) invoice/email collaborator failure, never surfaced

None of the surfaced errors is raised after Payment or AccessGrant state
has been written.

Author: DSP Development Team
Version: 1.0.0
"""

import logging
from typing import Any, Dict, Optional

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ReconciliationError(Exception):
    """
    Base exception class for all payment reconciliation errors.

    Attributes:
        message (str): Human-readable error message
        status_code (int): HTTP status code returned to the caller
        error_code (str): Stable machine-readable error identifier
        details (Dict[str, Any]): Additional error context

    Example:
        >>> try:
        ...     handler.approve(payment_id, principal)
        ... except ReconciliationError as e:
        ...     logger.warning("approval failed: %s", e.message)
    """

    status_code: int = status.HTTP_400_BAD_REQUEST
    error_code: str = "reconciliation_error"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for serialization.

        Returns:
            Dictionary representation of the exception
        """
        return {
            "message": self.message,
            "status_code": self.status_code,
            "error_code": self.error_code,
            "details": self.details,
            "exception_type": self.__class__.__name__,
        }


class AuthenticityError(ReconciliationError):
    """Signature or merchant check failed. Raised before any store access."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "invalid_signature"


class ValidationError(ReconciliationError):
    """
    Malformed input or a transition the payment's current state forbids.

    ``current_status`` is set when the error is about an ineligible
    transition, so admins see which terminal state blocked them.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "validation_error"

    def __init__(
        self,
        message: str,
        current_status: Optional[str] = None,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.current_status = current_status
        details = dict(details or {})
        if current_status is not None:
            details.setdefault("current_status", current_status)
        super().__init__(message, error_code=error_code, details=details)


class AuthorizationError(ReconciliationError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "forbidden"


class NotFoundError(ReconciliationError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "not_found"

    @classmethod
    def for_resource(cls, resource: str, reference: Any = None) -> "NotFoundError":
        details = {"resource": resource}
        if reference is not None:
            details["reference"] = str(reference)
        return cls(f"{resource} not found", details=details)


class DownstreamError(ReconciliationError):
    """
    Failure of a best-effort collaborator (invoice renderer, email sender).

    Only ever recorded by the best-effort runner; never propagated out of a
    reconciliation handler.
    """

    status_code = status.HTTP_502_BAD_GATEWAY
    error_code = "downstream_failure"


def api_exception_handler(exc: Exception, context: Dict[str, Any]) -> Optional[Response]:
    """
    DRF exception handler that renders ReconciliationErrors as structured
    JSON and defers everything else to the framework default.

    Configured through ``REST_FRAMEWORK["EXCEPTION_HANDLER"]``.
    """
    if isinstance(exc, ReconciliationError):
        view = context.get("view")
        logger.info(
            "%s in %s: %s",
            exc.__class__.__name__,
            view.__class__.__name__ if view else "unknown view",
            exc.message,
        )
        return Response({"success": False, "error": exc.to_dict()}, status=exc.status_code)

    return exception_handler(exc, context)
