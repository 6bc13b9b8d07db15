# Account Vault - Key Lifecycle Audit Log
#
# Append-only structured log of security-relevant events in the encryption
# layer: key derivation and disposal, session binding, passphrase caching and
# decryption failures. Entries carry owner ids and key fingerprints only;
# plaintext, passphrases and key material are never logged.

import logging
import os
import socket
import sys
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional
from uuid import uuid4

import structlog


class EventType(str, Enum):
    """Types of key lifecycle events that can be logged."""

    # Session
    SESSION_SIGNED_IN = "session.signed_in"
    SESSION_SIGNED_OUT = "session.signed_out"

    # Keys
    KEY_DERIVED = "key.derived"
    KEY_DISCARDED = "key.discarded"

    # Passphrase policy
    PASSPHRASE_REMEMBERED = "passphrase.remembered"
    PASSPHRASE_FORGOTTEN = "passphrase.forgotten"
    SALT_CREATED = "salt.created"
    SALT_IMPORTED = "salt.imported"

    # Failures
    DECRYPTION_FAILED = "decryption.failed"


class EventSeverity(str, Enum):
    """
    Severity levels for audit events.

    - INFO: normal lifecycle activity
    - ALERT: a read failed (wrong key, corrupted or foreign data)
    - CRITICAL: the passphrase check rejected a key at bind time
    """
    INFO = "info"
    ALERT = "alert"
    CRITICAL = "critical"


class AuditLogger:
    """
    Append-only audit logger for key lifecycle events.

    Features:
    - Structured JSON logging (structlog)
    - Automatic timestamp and event ID
    - Daily log file under ``log_dir``
    """

    def __init__(self, log_dir: Optional[Path] = None):
        """
        Initialize audit logger.

        Args:
            log_dir: Directory for audit logs (default: from settings)
        """
        if log_dir is None:
            from ..config import get_settings
            log_dir = get_settings().audit_dir

        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        structlog.configure(
            processors=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer()
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

        self._setup_file_handler()

        self.logger = structlog.get_logger("account_vault.audit")

    def _setup_file_handler(self):
        """Attach a daily file handler to the audit logger."""
        today = datetime.now().strftime("%Y-%m-%d")
        self.log_file = self.log_dir / f"audit_{today}.log"

        file_handler = logging.FileHandler(self.log_file, mode='a', encoding='utf-8')
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter('%(message)s'))  # structlog handles formatting

        audit_logger = logging.getLogger("account_vault.audit")
        audit_logger.addHandler(file_handler)
        audit_logger.setLevel(logging.INFO)
        audit_logger.propagate = False
        self._file_handler = file_handler

    def close(self):
        """Detach and close the file handler."""
        logging.getLogger("account_vault.audit").removeHandler(self._file_handler)
        self._file_handler.close()

    def log_event(
        self,
        event_type: EventType,
        severity: EventSeverity,
        message: str,
        owner_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Log a key lifecycle event.

        Args:
            event_type: Type of event (from EventType enum)
            severity: Severity level (from EventSeverity enum)
            message: Human-readable event description
            owner_id: Owner the event concerns, if any
            details: Additional details (never key material or plaintext!)

        Returns:
            str: Event ID (UUID) for reference
        """
        event_id = str(uuid4())

        event_data = {
            "event_id": event_id,
            "event_type": event_type.value,
            "severity": severity.value,
            "message": message,
            "owner_id": owner_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "details": details or {},
            "host": self._get_host_context(),
        }

        self.logger.info("key_event", **event_data)

        return event_id

    def _get_host_context(self) -> Dict[str, Any]:
        return {
            "os_user": os.getenv("USERNAME") or os.getenv("USER"),
            "hostname": socket.gethostname(),
            "platform": sys.platform,
        }


# Global logger instance
_audit_logger: Optional[AuditLogger] = None


def get_audit_logger() -> AuditLogger:
    """Get global audit logger (singleton pattern)."""
    global _audit_logger
    if _audit_logger is None:
        _audit_logger = AuditLogger()
    return _audit_logger


def set_audit_logger(instance: Optional[AuditLogger]) -> None:
    """Replace the global audit logger (for testing)."""
    global _audit_logger
    _audit_logger = instance


def log_key_event(
    event_type: EventType,
    severity: EventSeverity,
    message: str,
    **kwargs
) -> str:
    """
    Convenience function for logging key lifecycle events.

    Usage:
        log_key_event(
            EventType.KEY_DISCARDED,
            EventSeverity.INFO,
            "Key discarded on sign-out",
            owner_id="u1",
        )
    """
    return get_audit_logger().log_event(event_type, severity, message, **kwargs)
