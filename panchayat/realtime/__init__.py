"""
Live updates - citizen connection registry, notifier and WebSocket hub.
"""

from .registry import ConnectionRegistry, ConnectionBinding
from .notifier import Notifier, APPLICATION_UPDATE
from .hub import WebSocketHub

__all__ = [
    'ConnectionRegistry',
    'ConnectionBinding',
    'Notifier',
    'APPLICATION_UPDATE',
    'WebSocketHub'
]
