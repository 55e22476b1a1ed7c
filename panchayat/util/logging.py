"""
Structured logging for repository, artifact and notification operations.
"""

import logging
from typing import Any, Dict


class StructuredLogger:
    """Structured logger for record storage, artifact generation and live notifications."""

    def __init__(self, name: str = "panchayat"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        if status in ("failed", "error"):
            self.logger.error(message)
        elif status in ("degraded", "failover"):
            self.logger.warning(message)
        else:
            self.logger.info(message)

    def log_record_operation(self, operation: str, kind: str, record_id: str, store: str, status: str = "success"):
        """Log a repository operation against one record."""
        self.log_operation(f"record.{operation}", status, {
            "kind": kind,
            "record_id": record_id,
            "store": store,
        })

    def log_store_failover(self, operation: str, kind: str, reason: Any):
        """Log a durable store outage that was absorbed by the transient store."""
        self.log_operation(f"store.{operation}", "failover", {
            "kind": kind,
            "fallback": "transient",
            "reason": str(reason)[:200],
        })

    def log_artifact_operation(self, operation: str, record_id: str, fmt: str,
                               status: str = "success", details: Dict[str, Any] = None):
        """Log an artifact cache or generation operation."""
        log_details = {"record_id": record_id, "format": fmt}
        if details:
            log_details.update(details)

        self.log_operation(f"artifact.{operation}", status, log_details)

    def log_notification(self, citizen_id: str, record_id: str, status: str, connection_id: str = None):
        """Log a live notification attempt."""
        details = {"citizen_id": citizen_id, "record_id": record_id}
        if connection_id:
            details["connection_id"] = connection_id

        self.log_operation("notify.applicationUpdate", status, details)

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()
