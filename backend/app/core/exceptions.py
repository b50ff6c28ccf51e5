"""
HTTP error mapping.

Use generic error messages externally, detailed logging internally.
Sale and debt errors arrive as values (see app.core.errors) and are turned
into HTTPExceptions here, at the API boundary only.
"""
from fastapi import HTTPException, status
import logging

from app.core.errors import (
    DebtAlreadySettled,
    InsufficientStock,
    MedicineNotFound,
    NotADebtReceipt,
    ReceiptNotFound,
    ReconciliationRequired,
    SaleAborted,
    SaleCancelled,
    SaleInProgress,
    ValidationFailed,
)

logger = logging.getLogger(__name__)


class BusinessError:
    """Business-domain exceptions with safe (non-leaky) messages."""

    @staticmethod
    def not_found(resource: str = "Resource", reason: str = "") -> HTTPException:
        """
        Same 404 whether the row doesn't exist or belongs to another pharmacy.

        Example:
            if not medicine:
                raise BusinessError.not_found("Medicine")
        """
        if reason:
            logger.warning(f"Access denied / not found: {resource} - {reason}")

        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found",
        )

    @staticmethod
    def unauthorized(reason: str = "") -> HTTPException:
        logger.warning(f"Unauthorized access attempt: {reason}")
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication failed",
        )

    @staticmethod
    def forbidden(reason: str = "") -> HTTPException:
        logger.warning(f"Forbidden access: {reason}")
        return HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied",
        )

    @staticmethod
    def bad_request(detail: str) -> HTTPException:
        """
        400 for input validation errors.
        OK to include specific details here since user caused the issue.
        """
        logger.info(f"Bad request: {detail}")
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )

    @staticmethod
    def conflict(detail: str) -> HTTPException:
        """
        409 for resource conflicts.
        Example: "Paracetamol: 2 left, reduce quantity"
        """
        logger.info(f"Conflict: {detail}")
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
        )

    @staticmethod
    def unavailable(detail: str) -> HTTPException:
        """503: the operation failed cleanly and may be retried."""
        logger.warning(f"Service unavailable: {detail}")
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail,
        )

    @staticmethod
    def server_error(original_error: Exception = None) -> HTTPException:
        """
        Generic 500 - logs actual error internally, hides from user.
        """
        if original_error:
            logger.error(
                f"Internal server error: {type(original_error).__name__}: {str(original_error)}",
                exc_info=True
            )
        else:
            logger.error("Internal server error occurred")

        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An internal error occurred. Please try again later.",
        )

    @staticmethod
    def from_error(error) -> HTTPException:
        """Map an Err(...) payload from the sale core or debt tracker."""
        if isinstance(error, ValidationFailed):
            return BusinessError.bad_request(error.message)
        if isinstance(error, NotADebtReceipt):
            return BusinessError.bad_request(error.message)
        if isinstance(error, (MedicineNotFound, ReceiptNotFound)):
            return BusinessError.not_found("Medicine" if isinstance(error, MedicineNotFound) else "Receipt", error.message)
        if isinstance(error, (InsufficientStock, SaleInProgress, DebtAlreadySettled, SaleCancelled)):
            return BusinessError.conflict(error.message)
        if isinstance(error, SaleAborted):
            logger.error(f"Sale aborted after compensation: {error.reason}")
            return BusinessError.unavailable(error.message)
        if isinstance(error, ReconciliationRequired):
            logger.critical(f"Reconciliation required: unreleased={list(error.unreleased)} reason={error.reason}")
            return HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=error.message,
            )
        return BusinessError.server_error()
