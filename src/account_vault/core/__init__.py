# Account Vault - Core Module
#
# Shared functionality across the encryption layer:
# - Audit logging of key lifecycle events
# - SQLite connection helper for the local stores

from .audit_log import (
    AuditLogger,
    EventSeverity,
    EventType,
    get_audit_logger,
    log_key_event,
    set_audit_logger,
)

__all__ = [
    "AuditLogger",
    "EventType",
    "EventSeverity",
    "get_audit_logger",
    "set_audit_logger",
    "log_key_event",
]
