"""
Best-effort live notifications.

A notification goes out only if the citizen has a bound connection at the time
of the call. There is no queue and no retry; clients treat these events as a
hint to refresh, never as the source of truth.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from .registry import ConnectionRegistry
from ..util.logging import logger

APPLICATION_UPDATE = "applicationUpdate"


class Transport(Protocol):
    def deliver(self, connection_id: str, event: str, payload: Dict[str, Any]) -> None:
        ...


class Notifier:
    """Pushes applicationUpdate events to whichever connection a citizen holds."""

    def __init__(self, registry: ConnectionRegistry, transport: Optional[Transport] = None):
        self.registry = registry
        self.transport = transport

    def notify(self, citizen_id: str, record_id: str, category: str, status: str, message: str) -> bool:
        """Push an update if the citizen is connected. Returns True if handed to the transport."""
        connection_id = self.registry.lookup(citizen_id)
        if connection_id is None or self.transport is None:
            logger.log_notification(citizen_id, record_id, "skipped")
            return False

        payload = {
            "recordId": record_id,
            "category": category,
            "status": status,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self.transport.deliver(connection_id, APPLICATION_UPDATE, payload)
        except Exception as e:
            logger.warning(f"Notification to {citizen_id} on {connection_id} failed: {e}")
            return False

        logger.log_notification(citizen_id, record_id, "sent", connection_id)
        return True
