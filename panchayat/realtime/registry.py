"""
Connection registry - which live connection currently represents each citizen.

At most one connection per citizen; the latest bind wins. The registry is an
ordinary object owned by the service container, not module state.
"""

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional


@dataclass
class ConnectionBinding:
    citizen_id: str
    connection_id: str
    last_seen: datetime


class ConnectionRegistry:
    """Thread-safe citizen id <-> connection id map."""

    def __init__(self):
        self._by_citizen: Dict[str, ConnectionBinding] = {}
        self._by_connection: Dict[str, str] = {}
        self._lock = threading.Lock()

    def bind(self, citizen_id: str, connection_id: str) -> ConnectionBinding:
        """Record or overwrite the live connection for a citizen."""
        binding = ConnectionBinding(citizen_id, connection_id, datetime.now())
        with self._lock:
            previous = self._by_citizen.get(citizen_id)
            if previous is not None and self._by_connection.get(previous.connection_id) == citizen_id:
                del self._by_connection[previous.connection_id]

            # A connection represents one citizen; rebinding it moves it.
            other_citizen = self._by_connection.get(connection_id)
            if other_citizen is not None and other_citizen != citizen_id:
                self._by_citizen.pop(other_citizen, None)

            self._by_citizen[citizen_id] = binding
            self._by_connection[connection_id] = citizen_id
        return binding

    def unbind(self, connection_id: str) -> Optional[str]:
        """Remove whichever citizen maps to this connection. Returns that citizen id."""
        with self._lock:
            citizen_id = self._by_connection.pop(connection_id, None)
            if citizen_id is not None:
                binding = self._by_citizen.get(citizen_id)
                if binding is not None and binding.connection_id == connection_id:
                    del self._by_citizen[citizen_id]
            return citizen_id

    def lookup(self, citizen_id: str) -> Optional[str]:
        with self._lock:
            binding = self._by_citizen.get(citizen_id)
            return binding.connection_id if binding else None

    def touch(self, connection_id: str):
        """Refresh last-seen for the citizen bound to a connection."""
        with self._lock:
            citizen_id = self._by_connection.get(connection_id)
            if citizen_id is not None:
                self._by_citizen[citizen_id].last_seen = datetime.now()

    def bindings(self) -> List[ConnectionBinding]:
        with self._lock:
            return list(self._by_citizen.values())

    def __len__(self):
        with self._lock:
            return len(self._by_citizen)
