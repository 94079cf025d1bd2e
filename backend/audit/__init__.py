"""
Audit Trail
Append-only record of trading and administrative actions.

Structure:
    audit/
    ├── models.py    → AuditAction, AuditLogEntry
    └── log.py       → AuditLog (append + query)

Usage:
    from audit import get_audit_log, AuditAction

    log = get_audit_log()
    entry_id = log.record("trader-1", AuditAction.TRADE_EXECUTED, "order", order_id,
                          {"amount": 10.0})

    # Lazy, oldest first
    for entry in log.query(actor_id="trader-1"):
        print(entry.to_dict())
"""

from .models import (
    AuditAction,
    AuditLogEntry,
    TargetType,
)

from .log import (
    AuditLog,
    get_audit_log,
)

__all__ = [
    # Models
    "AuditAction",
    "AuditLogEntry",
    "TargetType",
    # Log
    "AuditLog",
    "get_audit_log",
]
