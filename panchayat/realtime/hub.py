"""
WebSocket hub - the transport behind live notifications.

Notifications are raised from worker threads (sync request handlers, the
generation pool), so delivery hands the send to the event loop that owns the
socket and returns without waiting.
"""

import asyncio
import threading
import uuid
from typing import Any, Dict, Tuple

from fastapi import WebSocket

from ..util.logging import logger


class WebSocketHub:
    """Tracks open sockets by connection id and delivers events to them."""

    def __init__(self):
        self._sockets: Dict[str, Tuple[WebSocket, asyncio.AbstractEventLoop]] = {}
        self._lock = threading.Lock()

    def attach(self, websocket: WebSocket) -> str:
        """Register an accepted socket on the running loop and return its connection id."""
        connection_id = uuid.uuid4().hex
        with self._lock:
            self._sockets[connection_id] = (websocket, asyncio.get_running_loop())
        return connection_id

    def detach(self, connection_id: str):
        with self._lock:
            self._sockets.pop(connection_id, None)

    def deliver(self, connection_id: str, event: str, payload: Dict[str, Any]) -> None:
        with self._lock:
            entry = self._sockets.get(connection_id)
        if entry is None:
            raise LookupError(f"connection {connection_id} is not open")

        websocket, loop = entry
        future = asyncio.run_coroutine_threadsafe(
            websocket.send_json({"event": event, "data": payload}), loop
        )
        future.add_done_callback(lambda f: self._report(connection_id, f))

    def _report(self, connection_id: str, future):
        if not future.cancelled() and future.exception() is not None:
            logger.warning(f"Live update to connection {connection_id} failed: {future.exception()}")

    def __len__(self):
        with self._lock:
            return len(self._sockets)
