"""
Audit logging for business-critical operations.

One JSON object per event on the `audit` logger: who (staff id), where
(pharmacy id), what (resource and id), and what changed.
"""
import logging
import json
from datetime import datetime, timezone
from typing import Any, Optional, Dict

from app.core.tenant import TenantContext

# Separate logger for audit events (can be shipped to centralized logging)
audit_logger = logging.getLogger("audit")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class AuditLog:
    """Central audit logging for sales, stock and money events."""

    @staticmethod
    def log_action(
        action: str,  # "create", "update", "delete", "paid", "confirmed"
        resource_type: str,  # "medicine", "debt", "admin_debt", "notification", "pharmacy", "staff"
        resource_id: Optional[int],
        ctx: TenantContext,
        changes: Optional[Dict[str, Any]] = None,
    ):
        """
        Usage:
            AuditLog.log_action("delete", "medicine", 456, ctx, changes={"name": "Paracetamol"})
        """
        log_entry = {
            "timestamp": _now(),
            "event_type": f"{resource_type}.{action}",
            "staff_id": ctx.staff_id,
            "pharmacy_id": ctx.pharmacy_id,
            "resource_id": resource_id,
        }

        if changes:
            log_entry["changes"] = changes

        audit_logger.info(json.dumps(log_entry, default=str))

    @staticmethod
    def log_sale(
        outcome: str,  # "committed", "aborted", "reconciliation_required"
        token: str,
        ctx: TenantContext,
        receipt_id: Optional[int] = None,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """
        Every finished sale attempt, successful or not.
        Reconciliation events are logged at CRITICAL: stock no longer matches sales.
        """
        log_entry = {
            "timestamp": _now(),
            "event_type": f"sale.{outcome}",
            "request_token": token,
            "staff_id": ctx.staff_id,
            "pharmacy_id": ctx.pharmacy_id,
            "receipt_id": receipt_id,
        }
        if error_code:
            log_entry["error_code"] = error_code
        if details:
            log_entry["details"] = details

        if outcome == "reconciliation_required":
            audit_logger.critical(json.dumps(log_entry, default=str))
        elif outcome == "aborted":
            audit_logger.warning(json.dumps(log_entry, default=str))
        else:
            audit_logger.info(json.dumps(log_entry, default=str))

    @staticmethod
    def log_access_denied(
        action: str,
        resource_type: str,
        resource_id: Optional[int],
        staff_id: Optional[int],
        reason: str,
    ):
        """
        Staff reaching for another pharmacy's rows, or for admin-only routes.

        Usage:
            AuditLog.log_access_denied("read", "receipt", 456, 1, "Different pharmacy")
        """
        log_entry = {
            "timestamp": _now(),
            "event_severity": "WARNING",
            "event_type": "access_denied",
            "action": action,
            "resource_type": resource_type,
            "resource_id": resource_id,
            "staff_id": staff_id,
            "reason": reason,
        }

        audit_logger.warning(json.dumps(log_entry))
