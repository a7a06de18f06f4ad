"""
WebSocket message surface for UI clients
"""

import asyncio
import json
from typing import Any, Dict, Optional, Set

import websockets

from config import SERVER_CONFIG
from core.logging_config import get_logger, log_error_with_context
from events import event_bus, EventBus, EventTypes, SystemEvent

from .router import MessageRouter

logger = get_logger(__name__)


class MessageWebSocketServer:
    """
    Accepts UI connections, answers their messages and pushes state broadcasts.

    Each inbound frame is a JSON object with a ``type``; the reply echoes the
    frame's ``requestId`` when one is given. Every ``GITHUB_CONNECT_STATUS``
    event on the bus is forwarded to all connected clients.
    """

    def __init__(self, router: MessageRouter,
                 host: str = SERVER_CONFIG["host"],
                 port: int = SERVER_CONFIG["port"],
                 bus: Optional[EventBus] = None):
        self.router = router
        self.host = host
        self.port = port
        self.bus = bus or event_bus
        self.clients: Set[Any] = set()
        self.server = None
        self._pending: Set[asyncio.Task] = set()

        self._unsubscribe = self.bus.on(EventTypes.GITHUB_CONNECT_STATUS, self._handle_status_event)

    async def handle_client(self, websocket, path=None):
        """Handle a WebSocket client connection"""
        self.clients.add(websocket)
        logger.info(f"Client connected: {websocket.remote_address} (Total: {len(self.clients)})")
        self.bus.emit(EventTypes.WEBSOCKET_CLIENT_CONNECT, {"clients": len(self.clients)},
                      source="MessageWebSocketServer")

        try:
            state = await self.router.controller.get_state()
            await websocket.send(json.dumps({
                "type": EventTypes.GITHUB_CONNECT_STATUS,
                "payload": state.to_dict(),
            }))

            async for raw in websocket:
                task = asyncio.create_task(self._answer(websocket, raw))
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)

        except websockets.exceptions.ConnectionClosed:
            pass
        finally:
            self.clients.discard(websocket)
            logger.info(f"Client disconnected (Total: {len(self.clients)})")
            self.bus.emit(EventTypes.WEBSOCKET_CLIENT_DISCONNECT, {"clients": len(self.clients)},
                          source="MessageWebSocketServer")

    async def _answer(self, websocket, raw) -> None:
        reply = await self.process_frame(raw)
        try:
            await websocket.send(json.dumps(reply))
        except websockets.exceptions.ConnectionClosed:
            logger.debug("Client went away before its reply was sent")

    async def process_frame(self, raw) -> Dict[str, Any]:
        """Decode one frame, route it and build the reply"""
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            return {"ok": False, "error": "Invalid JSON message"}
        if not isinstance(message, dict):
            return {"ok": False, "error": "Message must be a JSON object"}

        try:
            reply = await self.router.handle(message)
        except Exception as e:
            log_error_with_context(logger, e, "handle_message", message_type=message.get("type"))
            reply = {"ok": False, "error": "Internal error"}

        if "requestId" in message:
            reply = {**reply, "requestId": message["requestId"]}
        return reply

    def _handle_status_event(self, event: SystemEvent) -> None:
        if not self.clients:
            return
        frame = json.dumps({"type": EventTypes.GITHUB_CONNECT_STATUS, "payload": event.data})
        websockets.broadcast(self.clients, frame)

    async def start(self):
        """Start listening; returns once the socket is bound"""
        logger.info(f"Starting WebSocket server on {self.host}:{self.port}")
        self.server = await websockets.serve(self.handle_client, self.host, self.port)
        logger.info(f"WebSocket server running on ws://{self.host}:{self.port}")

    async def stop(self):
        """Stop the server and close client connections"""
        logger.info("Stopping WebSocket server...")
        self._unsubscribe()

        if self.server is not None:
            self.server.close()
            await self.server.wait_closed()
            self.server = None

        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        logger.info("WebSocket server stopped")
