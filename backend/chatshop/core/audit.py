"""
Audit logging for order-critical operations.

Every event that changes money or stock is written as one JSON line to the
"audit" logger, so it can be shipped separately from application logs.
"""
import logging
import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional, Dict

# Separate logger for audit events (can be shipped to centralized logging)
audit_logger = logging.getLogger("audit")


def _emit(log_entry: Dict[str, Any], level: int = logging.INFO) -> None:
    log_entry.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
    audit_logger.log(level, json.dumps(log_entry, default=str))


class AuditLog:
    """Central audit logging for order lifecycle events."""

    @staticmethod
    def log_order_created(order_id: str, customer_id: str, total: Decimal, payment_method: str):
        """
        Usage:
            AuditLog.log_order_created("ORD-2410-0001", "2348012345678", Decimal("103000"), "cod")
        """
        _emit({
            "event_type": "order.created",
            "order_id": order_id,
            "customer_id": customer_id,
            "total": total,
            "payment_method": payment_method,
        })

    @staticmethod
    def log_stock_change(product_id: str, delta: int, remaining: Optional[int], reason: str):
        _emit({
            "event_type": "stock.changed",
            "product_id": product_id,
            "delta": delta,
            "remaining": remaining,
            "reason": reason,
        })

    @staticmethod
    def log_order_status(order_id: str, previous: str, new: str, updated_by: str):
        _emit({
            "event_type": "order.status_changed",
            "order_id": order_id,
            "previous": previous,
            "new": new,
            "updated_by": updated_by,
        })

    @staticmethod
    def log_negotiation(event: str, customer_id: str, product_id: Optional[str] = None, details: Optional[str] = None):
        """
        Negotiation lifecycle: started, cancelled, expired, commit_failed.

        Usage:
            AuditLog.log_negotiation("expired", "2348012345678", "PRD-001")
        """
        log_entry = {
            "event_type": f"negotiation.{event}",
            "customer_id": customer_id,
            "product_id": product_id,
        }
        if details:
            log_entry["details"] = details
        level = logging.WARNING if event == "commit_failed" else logging.INFO
        _emit(log_entry, level)
