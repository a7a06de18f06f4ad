"""
UI message surface
"""

from .router import MessageRouter, MessageTypes
from .websocket_server import MessageWebSocketServer

__all__ = ["MessageRouter", "MessageTypes", "MessageWebSocketServer"]
